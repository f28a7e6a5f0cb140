import pytest

from owaf.hcl import HclError, loads


def test_attributes():
    doc = loads('name = "abc"\ncount = 5\nflag = true\n')
    assert doc == {"name": "abc", "count": 5, "flag": True}


def test_labelled_and_plain_blocks():
    doc = loads(
        """
        # comment
        proxy "one" {
            host = "a.example.com"
            limit { n = 3 }
        }
        proxy "two" { host = "b.example.com" }
        """
    )
    assert set(doc["proxy"]) == {"one", "two"}
    assert doc["proxy"]["one"]["limit"] == {"n": 3}
    assert doc["proxy"]["two"]["host"] == "b.example.com"


def test_interpolation_kept_literal():
    assert loads('t = "${MINIO_URL}"')["t"] == "${MINIO_URL}"


def test_list_and_object():
    doc = loads('xs = [1, 2, "z"]\no = { a = 1, "b" = false }')
    assert doc["xs"] == [1, 2, "z"]
    assert doc["o"] == {"a": 1, "b": False}


def test_comment_styles():
    assert loads("// x\n/* y\n z */ a = 1") == {"a": 1}


@pytest.mark.parametrize(
    "text", ['a = ', 'proxy "x" {', 'a = 1\na = 2', '$', 'a = nope']
)
def test_invalid(text):
    with pytest.raises(HclError):
        loads(text)