import re

from catalog_agent.utils.naming import derive_file_name, normalise_title

TITLES = [
    "Weekly Deals",
    "Spring Sale!",
    "  __Hello__  ",
    "Akcija –50 % Poletje 2024",
    "ŠOLA & VRT",
    "!!!",
    "",
    "a" * 300,
]

NAME_RE = re.compile(r"^[a-z0-9_]+\.pdf$")


def test_names_are_safe_for_all_titles():
    """
    Every derived name is non-empty, ends in .pdf and only uses [a-z0-9_].
    """
    for t in TITLES:
        name = derive_file_name(t)
        assert name
        assert name.endswith(".pdf")
        assert NAME_RE.match(name), name


def test_non_alphanumerics_do_not_change_prefix():
    """
    Titles that differ only in punctuation/case share the normalised prefix.
    """
    assert normalise_title("Spring Sale!") == normalise_title("spring_sale") == "spring_sale"
    assert derive_file_name("Spring Sale!").startswith("spring_sale_")
    assert derive_file_name("spring_sale").startswith("spring_sale_")


def test_separators_collapsed_and_trimmed():
    assert normalise_title("  __Hello__  ") == "hello"
    assert normalise_title("a -- b") == "a_b"
    assert normalise_title("ŠOLA & VRT") == "ola_vrt"


def test_empty_title_still_named():
    """
    A title with nothing usable becomes `<millis>.pdf`.
    """
    assert re.match(r"^\d+\.pdf$", derive_file_name("!!!"))
    assert re.match(r"^\d+\.pdf$", derive_file_name(""))


def test_same_title_never_collides_in_process():
    """
    Even within the same millisecond, identical titles give distinct names.
    """
    names = [derive_file_name("Weekly Deals") for _ in range(500)]
    assert len(set(names)) == len(names)
    assert all(n.startswith("weekly_deals_") for n in names)


def test_long_titles_are_capped():
    name = derive_file_name("Katalog " * 100)
    assert len(name) < 200
    assert not normalise_title("Katalog " * 100).endswith("_")
