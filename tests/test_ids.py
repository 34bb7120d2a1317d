"""Tests for bookmark codes and report file names."""

from adsync_documenter.ids import bookmark_code, report_file_stem


def test_bookmark_code_format():
    """Test that bookmark codes are 16 lowercase hex characters."""
    code = bookmark_code("In from AD - User Join", "{1234}")

    assert len(code) == 16
    assert all(c in "0123456789abcdef" for c in code)


def test_bookmark_code_case_insensitive():
    """Test that anchor and link agree regardless of guid or text case."""
    assert bookmark_code("Rule", "{abcd-ef}") == bookmark_code("RULE", "{ABCD-EF}")


def test_bookmark_code_depends_on_section():
    """Test that the same text in two sections yields two anchors."""
    assert bookmark_code("Partitions", "{A}") != bookmark_code("Partitions", "{B}")


def test_bookmark_code_without_section():
    """Test that a missing section guid behaves like an empty one."""
    assert bookmark_code("Metaverse Configuration") == bookmark_code(
        "Metaverse Configuration", ""
    )


def test_report_file_stem_flattens_paths():
    """Test that nested config paths become a flat file stem."""
    assert report_file_stem("Contoso/Pilot", "Contoso/Production") == (
        "Contoso_Pilot_To_Contoso_Production"
    )
    assert report_file_stem("Contoso\\Pilot\\", "Prod") == "Contoso_Pilot_To_Prod"
