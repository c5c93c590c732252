# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for route classification.

Covers the routing conventions in priority order, path parameter
placeholders and the unmatched 404 guard.
"""

import pytest

from prometheus_api_metrics.routing import (
    ApiDescriptorExtractor,
    MountedRouteExtractor,
    RawPathExtractor,
    RouteInfo,
    classify_route,
    normalize_route_template,
    replace_path_params,
)


@pytest.mark.unit
class TestNormalizeRouteTemplate:
    """Test Starlette template normalization."""

    def test_plain_parameter(self):
        assert normalize_route_template("/api/tasks/{task_id}") == "/api/tasks/:task_id"

    def test_parameter_with_converter(self):
        assert normalize_route_template("/files/{file_path:path}") == "/files/:file_path"

    def test_multiple_parameters(self):
        assert (
            normalize_route_template("/users/{user_id}/orders/{order_id:int}")
            == "/users/:user_id/orders/:order_id"
        )

    def test_static_route_unchanged(self):
        assert normalize_route_template("/health") == "/health"


@pytest.mark.unit
class TestReplacePathParams:
    """Test replacement of concrete parameter values."""

    def test_replaces_value_with_placeholder(self):
        assert replace_path_params("/users/42", {"id": 42}) == "/users/:id"

    def test_does_not_touch_partial_segments(self):
        assert replace_path_params("/users/:id", {"id": "s"}) == "/users/:id"

    def test_multiple_params(self):
        route = replace_path_params(
            "/users/7/orders/abc", {"user_id": "7", "order_id": "abc"}
        )
        assert route == "/users/:user_id/orders/:order_id"

    def test_multi_segment_value(self):
        assert replace_path_params("/files/a/b.txt", {"path": "a/b.txt"}) == "/files/:path"

    def test_empty_value_ignored(self):
        assert replace_path_params("/users/", {"id": ""}) == "/users/"


@pytest.mark.unit
class TestClassifyRoute:
    """Test route label derivation."""

    def test_descriptor_path_used_verbatim(self):
        info = RouteInfo(
            url="/v1/widgets/9",
            base_path="/v1",
            route_path="/widgets/:id",
            descriptor_path="/widgets/{widgetId}",
        )
        assert classify_route(info) == "/widgets/{widgetId}"

    def test_base_path_and_route_are_joined(self):
        info = RouteInfo(url="/api/items/5", base_path="/api", route_path="/items/:item_id")
        assert classify_route(info) == "/api/items/:item_id"

    def test_root_route_not_duplicated(self):
        info = RouteInfo(url="/api/", base_path="/api", route_path="/")
        assert classify_route(info) == "/api"

    def test_route_pattern_preferred_over_raw_url(self):
        info = RouteInfo(
            url="/users/42", route_path="/users/:id", path_params={"id": "42"}
        )
        assert classify_route(info) == "/users/:id"

    def test_resolved_pattern_not_rewritten_by_param_values(self):
        info = RouteInfo(
            url="/api/v1/items/v1",
            route_path="/api/v1/items/:version",
            path_params={"version": "v1"},
        )
        assert classify_route(info) == "/api/v1/items/:version"

    def test_descriptor_path_not_rewritten_by_param_values(self):
        info = RouteInfo(
            url="/v1/things/v1",
            descriptor_path="/v1/things/{kind}",
            path_params={"kind": "v1"},
        )
        assert classify_route(info) == "/v1/things/{kind}"

    def test_raw_url_with_params_is_templated(self):
        info = RouteInfo(url="/users/42", path_params={"id": "42"})
        assert classify_route(info) == "/users/:id"

    def test_order_scenario(self):
        info = RouteInfo(
            url="/orders/abc123",
            route_path="/orders/:orderId",
            path_params={"orderId": "abc123"},
            status_code=200,
        )
        assert classify_route(info) == "/orders/:orderId"

    def test_unmatched_404_has_no_label(self):
        info = RouteInfo(url="/wp-admin/setup.php", status_code=404)
        assert classify_route(info) is None

    def test_unmatched_non_404_uses_raw_url(self):
        info = RouteInfo(url="/private/reports", status_code=403)
        assert classify_route(info) == "/private/reports"

    def test_matched_404_is_recorded(self):
        info = RouteInfo(
            url="/users/42",
            route_path="/users/:id",
            path_params={"id": "42"},
            status_code=404,
        )
        assert classify_route(info) == "/users/:id"

    def test_descriptor_404_is_recorded(self):
        info = RouteInfo(url="/pets/1", descriptor_path="/pets/{petId}", status_code=404)
        assert classify_route(info) == "/pets/{petId}"

    def test_base_path_only(self):
        info = RouteInfo(url="/api/unknown", base_path="/api", status_code=500)
        assert classify_route(info) == "/api"

    def test_nothing_known(self):
        assert classify_route(RouteInfo()) is None

    def test_custom_extractor_order(self):
        info = RouteInfo(
            url="/api/items/5",
            base_path="/api",
            route_path="/items/:item_id",
            descriptor_path="/items/{id}",
        )
        extractors = (MountedRouteExtractor(), ApiDescriptorExtractor())
        assert classify_route(info, extractors) == "/api/items/:item_id"


@pytest.mark.unit
class TestExtractors:
    """Test convention selection by the fields present."""

    def test_descriptor_applies_only_with_descriptor(self):
        extractor = ApiDescriptorExtractor()
        assert extractor.applies(RouteInfo(descriptor_path="/a"))
        assert not extractor.applies(RouteInfo(url="/a"))

    def test_mounted_requires_base_and_route(self):
        extractor = MountedRouteExtractor()
        assert extractor.applies(RouteInfo(base_path="/api", route_path="/a"))
        assert not extractor.applies(RouteInfo(base_path="/api"))
        assert not extractor.applies(RouteInfo(route_path="/a"))

    def test_raw_path_requires_no_base(self):
        extractor = RawPathExtractor()
        assert extractor.applies(RouteInfo(url="/a"))
        assert not extractor.applies(RouteInfo(url="/api/a", base_path="/api"))
