"""Tests for front matter parsing."""

import os
import sys
from datetime import date

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from hyperref_pkg.errors import InvalidFrontMatter, MissingFrontMatter
from hyperref_pkg.frontmatter import FrontMatter, parse_date, parse_front_matter, parse_time_to_read


class TestFrontMatter:
    """Test cases for front matter parsing."""

    def test_parse_all_fields(self):
        text = "---\ntitle: Hello\ndate: 01/31/2024\ntime_to_read: 4 minutes\n---\nBody text\n"
        front_matter, body = parse_front_matter(text, 'page:hello.md')

        assert front_matter.title == 'Hello'
        assert front_matter.date == date(2024, 1, 31)
        assert front_matter.time_to_read == '4 minutes'
        assert body == 'Body text\n'

    def test_display_date(self):
        front_matter = FrontMatter('Hello', date=date(2024, 3, 5))
        assert front_matter.display_date() == 'March 05, 2024'
        assert FrontMatter('Hello').display_date() is None

    def test_optional_fields_absent(self):
        front_matter, body = parse_front_matter("---\ntitle: Only a title\n---\n")
        assert front_matter == FrontMatter('Only a title')
        assert body == ''

    def test_null_date_means_no_date(self):
        front_matter, _ = parse_front_matter("---\ntitle: T\ndate: null\n---\n")
        assert front_matter.date is None

    def test_missing_block(self):
        with pytest.raises(MissingFrontMatter) as exc:
            parse_front_matter("# Just Markdown\n", 'page:x.md')
        assert exc.value.source == 'page:x.md'

    def test_block_must_be_first(self):
        with pytest.raises(MissingFrontMatter):
            parse_front_matter("\n---\ntitle: Late\n---\n")

    def test_missing_title(self):
        with pytest.raises(InvalidFrontMatter):
            parse_front_matter("---\ndate: 01/01/2024\n---\n")

    def test_non_string_title(self):
        with pytest.raises(InvalidFrontMatter):
            parse_front_matter("---\ntitle: [a, b]\n---\n")

    def test_invalid_yaml(self):
        with pytest.raises(InvalidFrontMatter):
            parse_front_matter("---\ntitle: [unclosed\n---\n")

    def test_not_a_mapping(self):
        with pytest.raises(InvalidFrontMatter):
            parse_front_matter("---\n- one\n- two\n---\n")

    def test_windows_line_endings(self):
        front_matter, body = parse_front_matter("---\r\ntitle: CRLF\r\n---\r\nBody\r\n")
        assert front_matter.title == 'CRLF'
        assert body == 'Body\r\n'

    def test_body_may_contain_rules(self):
        _, body = parse_front_matter("---\ntitle: T\n---\nabove\n\n---\n\nbelow\n")
        assert body == 'above\n\n---\n\nbelow\n'


class TestDates:
    """Test cases for the date field."""

    def test_parse_valid_date(self):
        assert parse_date('12/25/2023') == date(2023, 12, 25)

    def test_surrounding_whitespace(self):
        assert parse_date(' 07/04/2021 ') == date(2021, 7, 4)

    @pytest.mark.parametrize('value', ['2024-01-31', '31/01/2024', '13/01/2024', 'yesterday'])
    def test_rejects_other_formats(self, value):
        with pytest.raises(InvalidFrontMatter):
            parse_date(value)

    def test_rejects_yaml_dates(self):
        # unquoted ISO dates arrive as date objects
        with pytest.raises(InvalidFrontMatter):
            parse_front_matter("---\ntitle: T\ndate: 2024-01-31\n---\n")

    def test_rejects_numbers(self):
        with pytest.raises(InvalidFrontMatter):
            parse_date(20240131)


class TestTimeToRead:
    def test_numbers_become_text(self):
        assert parse_time_to_read(5) == '5'

    def test_text_is_kept(self):
        assert parse_time_to_read('about 3 minutes') == 'about 3 minutes'

    def test_rejects_structures(self):
        with pytest.raises(InvalidFrontMatter):
            parse_time_to_read({'minutes': 3})

    def test_rejects_booleans(self):
        with pytest.raises(InvalidFrontMatter):
            parse_time_to_read(True)
