from lms_admin.utils.user_agent import parse_user_agent

CHROME_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/115.0 Safari/537.36"
)
SAFARI_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 16_5 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/16.5 Mobile/15E148 Safari/604.1"
)
FIREFOX_LINUX = "Mozilla/5.0 (X11; Linux x86_64; rv:109.0) Gecko/20100101 Firefox/118.0"
IPAD = (
    "Mozilla/5.0 (iPad; CPU OS 15_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/15.0 Safari/604.1"
)


def test_chrome_wins_over_safari_token():
    info = parse_user_agent(CHROME_WINDOWS)
    assert info.browser == "Chrome 115.0"
    assert info.os == "Windows 10/11"
    assert info.device_type == "Desktop"


def test_iphone_is_mobile_safari():
    info = parse_user_agent(SAFARI_IPHONE)
    assert info.browser == "Safari 604.1"
    assert info.device_type == "Mobile"


def test_firefox_on_linux():
    info = parse_user_agent(FIREFOX_LINUX)
    assert info.browser == "Firefox 118.0"
    assert info.os == "Linux"


def test_ipad_is_tablet():
    info = parse_user_agent(IPAD)
    assert info.device_type == "Tablet"


def test_windows_7_and_unknown_versions():
    assert parse_user_agent("Mozilla/5.0 (Windows NT 6.1)").os == "Windows 7"
    assert parse_user_agent("Mozilla/5.0 (Windows NT 5.1)").os == "Windows 5.1"


def test_empty_user_agent():
    info = parse_user_agent("")
    assert info.browser == "Unknown Browser"
    assert info.os == "Unknown OS"
    assert info.display == "Unknown Browser on Unknown OS"
