import pytest

from services.user_agent import parse_user_agent


@pytest.mark.parametrize(
    "user_agent, expected",
    [
        (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/124.0 Safari/537.36 Edg/124.0",
            ("Edge", "Windows", "Desktop"),
        ),
        (
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_4) AppleWebKit/605.1.15 (KHTML, like Gecko) "
            "Version/17.4 Safari/605.1.15",
            ("Safari", "macOS", "Desktop"),
        ),
        (
            "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/124.0 Mobile Safari/537.36",
            ("Chrome", "Android", "Mobile"),
        ),
        (
            "Mozilla/5.0 (iPad; CPU OS 17_4 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) "
            "Version/17.4 Mobile/15E148 Safari/604.1",
            ("Safari", "iOS", "Tablet"),
        ),
        (
            "Mozilla/5.0 (X11; Linux x86_64; rv:125.0) Gecko/20100101 Firefox/125.0",
            ("Firefox", "Linux", "Desktop"),
        ),
        (
            "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)",
            ("Other", "Other", "Bot"),
        ),
        ("curl/8.5.0", ("curl", "Other", "Desktop")),
    ],
)
def test_parse_user_agent(user_agent, expected):
    parsed = parse_user_agent(user_agent)
    assert (parsed["browser"], parsed["operating_system"], parsed["device_type"]) == expected


def test_missing_user_agent_is_unknown():
    assert parse_user_agent(None) == {
        "browser": "Unknown",
        "operating_system": "Unknown",
        "device_type": "Unknown",
    }
    assert parse_user_agent("   ")["device_type"] == "Unknown"
