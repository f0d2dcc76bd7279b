"""Tests for the naming module."""
from __future__ import annotations

import re
from concurrent.futures import ThreadPoolExecutor

from screenshot_organizer.naming import is_screenshot_name
from screenshot_organizer.naming import is_valid_app_id
from screenshot_organizer.naming import next_placeholder_name
from screenshot_organizer.naming import sanitize_name

PLACEHOLDER = re.compile(r'Empty GameName (\d+)')


def _placeholder_number(name: str) -> int:
    match = PLACEHOLDER.fullmatch(name)
    assert match is not None, name
    return int(match.group(1))


class TestSanitizeName:
    """Tests for the sanitize_name function."""

    def test_replaces_invalid_characters(self) -> None:
        """Test that every blacklisted character becomes an underscore."""
        assert sanitize_name('a\\b/c:d*e?f"g<h>i|j') == 'a_b_c_d_e_f_g_h_i_j'

    def test_keeps_other_characters(self) -> None:
        """Test that ordinary punctuation and unicode survive."""
        assert sanitize_name("Baldur's Gate 3") == "Baldur's Gate 3"
        assert sanitize_name('NieR:Automata™') == 'NieR_Automata™'

    def test_normalizes_whitespace(self) -> None:
        """Test collapsing and trimming whitespace."""
        assert sanitize_name('  Half   Life\t2 \n') == 'Half Life 2'

    def test_result_has_no_invalid_characters(self) -> None:
        """Test output never contains blacklisted characters."""
        for raw in ['<<>>', 'C:\\Games\\', 'what?*', '"quoted"', '|pipe|']:
            assert not re.search(r'[\\/:*?"<>|]', sanitize_name(raw))

    def test_blank_names_get_increasing_placeholders(self) -> None:
        """Test that blank names produce numbered placeholders."""
        first = _placeholder_number(sanitize_name(''))
        second = _placeholder_number(sanitize_name('   '))
        third = _placeholder_number(sanitize_name('\t\n'))

        assert first >= 1
        assert first < second < third

    def test_dot_names_get_placeholders(self) -> None:
        """Test that bare dot names are not used as folder names."""
        assert PLACEHOLDER.fullmatch(sanitize_name('.'))
        assert PLACEHOLDER.fullmatch(sanitize_name(' .. '))
        assert sanitize_name('...') == '...'

    def test_placeholders_unique_across_threads(self) -> None:
        """Test that concurrent callers never share a placeholder number."""
        with ThreadPoolExecutor(max_workers=8) as executor:
            names = list(executor.map(lambda _: next_placeholder_name(), range(200)))

        assert len(set(names)) == 200


class TestIsValidAppId:
    """Tests for the is_valid_app_id function."""

    def test_digits(self) -> None:
        """Test plain digit strings."""
        assert is_valid_app_id('123') is True
        assert is_valid_app_id('0') is True

    def test_rejects_non_digits(self) -> None:
        """Test strings with anything besides ASCII digits."""
        assert is_valid_app_id('12a') is False
        assert is_valid_app_id('') is False
        assert is_valid_app_id(' 12') is False
        assert is_valid_app_id('-12') is False
        assert is_valid_app_id('١٢') is False

    def test_rejects_non_strings(self) -> None:
        """Test that other types return False instead of raising."""
        assert is_valid_app_id(None) is False
        assert is_valid_app_id(123) is False


class TestIsScreenshotName:
    """Tests for the is_screenshot_name function."""

    def test_valid_names(self) -> None:
        """Test Steam screenshot names for every supported extension."""
        assert is_screenshot_name('123_456_1.png') is True
        assert is_screenshot_name('730_20240101123456_2.jpg') is True
        assert is_screenshot_name('1_2_3.jpeg') is True
        assert is_screenshot_name('1_2_3.avif') is True

    def test_requires_whole_name_match(self) -> None:
        """Test that extra text before or after is rejected."""
        assert is_screenshot_name('123_456_1.png.bak') is False
        assert is_screenshot_name('x123_456_1.png') is False
        assert is_screenshot_name('123_456_1.png\n') is False

    def test_rejects_other_names(self) -> None:
        """Test malformed names."""
        assert is_screenshot_name('abc_456_1.png') is False
        assert is_screenshot_name('123_456.png') is False
        assert is_screenshot_name('123_456_1.gif') is False
        assert is_screenshot_name('123_456_1.PNG') is False
        assert is_screenshot_name('') is False
        assert is_screenshot_name(None) is False
