import pytest

from src.platform.logging.loguru_io_utils import (
    mask_sensitive,
    should_mask_keyword,
    truncate_content,
)


pytestmark = pytest.mark.unit


class TestMaskSensitive:
    @pytest.mark.parametrize(
        ('raw', 'hidden'),
        [
            ("{'password': 'hunter2'}", 'hunter2'),
            ('token=abc.def.ghi', 'abc.def.ghi'),
            ('api_key: re_123456', 're_123456'),
        ],
    )
    def test_sensitive_values_are_masked(self, raw, hidden):
        masked = mask_sensitive(raw)

        assert hidden not in masked
        assert '********' in masked

    def test_plain_data_is_returned_unchanged(self):
        data = {'name': 'Ada', 'timeSlot': '2024-06-25 09:00-10:30'}

        assert mask_sensitive(data) is data

    def test_keyword_masking(self):
        assert should_mask_keyword('password', 'admin') == '********'
        assert should_mask_keyword('email', 'ada@example.com') == 'ada@example.com'


def test_truncate_content():
    assert truncate_content('short') == 'short'
    assert truncate_content('x' * 20, max_length=5) == 'xxxxx... (truncated 15 chars)'
