from telemetry_decorators.utils.http_utils import (
    convert_status_to_status_label,
    get_route_pattern,
    is_known_route,
    route_path_to_regex,
    sanitize_path,
)

ROUTES = ["/", "/users", "/users/{user_id}", "/files/{file_path:path}", "/orgs/:org/members"]


class TestRoutePathToRegex:
    def test_brace_parameter_matches_one_segment(self):
        """Test that a brace parameter matches one segment."""
        pattern = route_path_to_regex("/users/{user_id}")
        assert pattern.match("/users/42")
        assert not pattern.match("/users/42/posts")
        assert not pattern.match("/users/")

    def test_path_parameter_matches_rest(self):
        """Test that a path parameter matches the rest."""
        assert route_path_to_regex("/files/{file_path:path}").match("/files/a/b/c.txt")

    def test_colon_parameter(self):
        """Test a colon parameter."""
        assert route_path_to_regex("/orgs/:org/members").match("/orgs/acme/members")

    def test_literals_are_escaped(self):
        """Test that literal characters are escaped."""
        pattern = route_path_to_regex("/v1.0/status")
        assert pattern.match("/v1.0/status")
        assert not pattern.match("/v1x0/status")


class TestRouteLookup:
    def test_sanitize_path(self):
        """Test sanitizing a request path."""
        assert sanitize_path("/users/1?x=1#top") == "/users/1"

    def test_first_matching_template(self):
        """Test picking the first matching template."""
        assert get_route_pattern("/users/7?expand=true", ROUTES) == "/users/{user_id}"
        assert get_route_pattern("/", ROUTES) == "/"

    def test_unknown_route(self):
        """Test a path matching no template."""
        assert get_route_pattern("/admin", ROUTES) is None
        assert not is_known_route("/admin", ROUTES)
        assert is_known_route("/orgs/acme/members", ROUTES)


def test_convert_status_to_status_label():
    """Test converting status codes to labels."""
    assert convert_status_to_status_label(204) == "2xx"
    assert convert_status_to_status_label(302) == "3xx"
    assert convert_status_to_status_label(404) == "4xx"
    assert convert_status_to_status_label(503) == "5xx"
    assert convert_status_to_status_label(101) == "unknown"
