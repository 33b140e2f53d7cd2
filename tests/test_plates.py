from branchboard.services.plates import build_plate, normalize_plate


def test_build_plate():
    assert build_plate("m", "ab", "1234", False) == "M - AB 1234"
    assert build_plate("M", "AB", "1234", True) == "M - AB 1234E"
    assert build_plate("fs", "", "", False) == "FS"
    assert build_plate("", "ab", "1", False) == ""


def test_normalize_plate():
    assert normalize_plate("  m -  ab 12 ") == "M - AB 12"
