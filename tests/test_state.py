"""Test embedded app-state extraction"""

import pytest

from deezer_downloader.core.exceptions import EmbeddedStateError, MarkerNotFoundError
from deezer_downloader.deezer.state import extract_state, load_state


class TestExtractState:
    """Test extract_state()"""

    def test_text_between_markers(self, app_state_page):
        """Test the raw text between the markers is returned"""
        html = app_state_page('{"DATA": {"SNG_ID": "1"}}')
        assert extract_state(html) == '{"DATA": {"SNG_ID": "1"}}'

    def test_end_marker_searched_after_start(self):
        """Test an earlier </script> does not end the document"""
        html = '<script>a()</script><script>window.__DZR_APP_STATE__ = {"a": 1}</script>'
        assert extract_state(html) == '{"a": 1}'

    def test_missing_start_marker(self):
        """Test a page without app state"""
        with pytest.raises(MarkerNotFoundError):
            extract_state("<html><body>nothing</body></html>")

    def test_missing_end_marker(self):
        """Test a truncated page"""
        with pytest.raises(MarkerNotFoundError):
            extract_state('window.__DZR_APP_STATE__ = {"a": 1}')

    def test_custom_markers(self):
        """Test arbitrary marker pairs"""
        assert extract_state("xx[BEGIN]payload[END]yy", "[BEGIN]", "[END]") == "payload"


class TestLoadState:
    """Test load_state()"""

    def test_decodes_document(self, app_state_page):
        """Test the document is decoded"""
        state = load_state(app_state_page('{"SONGS": {"data": [{"SNG_ID": "7"}]}}'))
        assert state["SONGS"]["data"][0]["SNG_ID"] == "7"

    def test_trailing_text_ignored(self, app_state_page):
        """Test text after the JSON value is ignored"""
        state = load_state(app_state_page('{"a": 1};\nwindow.other = 2;'))
        assert state == {"a": 1}

    def test_invalid_json(self, app_state_page):
        """Test broken JSON raises EmbeddedStateError"""
        with pytest.raises(EmbeddedStateError):
            load_state(app_state_page("{not json"))

    def test_marker_error_is_embedded_state_error(self):
        """Test callers can catch both failures as EmbeddedStateError"""
        with pytest.raises(EmbeddedStateError):
            load_state("<html></html>")
