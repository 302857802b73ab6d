import pytest

from composekit.selectors import XPATH_PREFIX, translate


@pytest.mark.parametrize(
    ("selector", "expected"),
    [
        ("div", "//div"),
        ("#sidebar a", '//*[@id="sidebar"]//a'),
        ("div > p", "//div/p"),
        ("div.item", '//div[contains(concat(" ", @class, " "), " item ")]'),
        (".item", '//*[contains(concat(" ", @class, " "), " item ")]'),
        ("a[href^=http://]", '//a[starts-with(@href, "http://")]'),
        ("a[href*=example]", '//a[contains(@href, "example")]'),
        ("input[type=text]", '//input[@type="text"]'),
        ("[data-role]", "//*[@data-role]"),
        ("ul li:first-child", "//ul//li[1]"),
        ("h1 + p", "//h1/following-sibling::*[1]/self::p"),
        ("#x[href^=http]", '//*[@id="x"][starts-with(@href, "http")]'),
    ],
)
def test_translate_supported_subset(selector, expected):
    assert translate(selector) == expected


def test_translate_keeps_quoted_literals_intact():
    assert translate('a[title="a.b #c"]') == '//a[@title="a.b #c"]'
    assert translate("a[href^='http://x.y']") == "//a[starts-with(@href, 'http://x.y')]"


def test_translate_xpath_prefix_passes_through():
    assert translate(f"{XPATH_PREFIX}//div[@id='x']/p[2]") == "//div[@id='x']/p[2]"


def test_translate_is_deterministic():
    selector = "#content ul.posts > li a[href^=/blog]"
    assert translate(selector) == translate(selector)


def test_translate_quotes_values_containing_double_quotes():
    assert translate("a[title=say\"hi]") == "//a[@title='say\"hi']"
