"""
Tests for the SecretStore mapping.

Tests cover:
- Name validation
- Dict-like magic methods
- Change tracking
- Canonical encode/decode and rejection of malformed payloads
"""
import orjson
import pytest

from wpdocker.data import SecretStore, validate_name


@pytest.fixture
def store():
    """Create an empty SecretStore."""
    return SecretStore()


@pytest.fixture
def store_with_data():
    """Create a SecretStore with initial secrets."""
    return SecretStore(data={
        'CLOUDFLARE_API_TOKEN': 'cf-token',
        'KOMODO_API_KEY': 'K-1',
    })


class TestNameValidation:
    """Tests for secret name rules."""

    @pytest.mark.parametrize("name", ["A", "GITHUB_TOKEN", "_private", "key2"])
    def test_valid_names(self, name):
        validate_name(name)

    @pytest.mark.parametrize("name", ["", "2FA", "MY-KEY", "A B", "A=B", "x" * 256])
    def test_invalid_names(self, name):
        with pytest.raises(ValueError):
            validate_name(name)

    def test_setitem_rejects_invalid_name(self, store):
        with pytest.raises(ValueError):
            store['bad name'] = 'x'

    def test_setitem_rejects_non_string_value(self, store):
        with pytest.raises(TypeError):
            store['PORT'] = 8080

    def test_setitem_rejects_lone_surrogate(self, store):
        # what click hands over for argv bytes that are not UTF-8
        with pytest.raises(ValueError):
            store['TOKEN'] = 'abc\udcff'
        assert 'TOKEN' not in store


class TestMagicMethods:
    """Tests for dict-like behaviour."""

    def test_empty(self, store):
        assert store.empty is True
        assert len(store) == 0

    def test_initial_data(self, store_with_data):
        assert store_with_data['CLOUDFLARE_API_TOKEN'] == 'cf-token'
        assert len(store_with_data) == 2
        assert store_with_data.is_changed is False

    def test_getitem_keyerror(self, store):
        with pytest.raises(KeyError):
            _ = store['MISSING']

    def test_overwrite_keeps_single_entry(self, store):
        store['A'] = 'x'
        store['A'] = 'y'
        assert store['A'] == 'y'
        assert list(store) == ['A']

    def test_delitem(self, store_with_data):
        del store_with_data['KOMODO_API_KEY']
        assert 'KOMODO_API_KEY' not in store_with_data
        assert store_with_data.is_changed is True

    def test_names_sorted(self, store):
        store['B'] = '2'
        store['A'] = '1'
        assert store.names() == ['A', 'B']

    def test_equality_with_dict(self, store_with_data):
        assert store_with_data == {
            'CLOUDFLARE_API_TOKEN': 'cf-token',
            'KOMODO_API_KEY': 'K-1',
        }

    def test_repr_hides_values(self, store_with_data):
        text = repr(store_with_data)
        assert 'CLOUDFLARE_API_TOKEN' in text
        assert 'cf-token' not in text

    def test_copy_is_independent(self, store_with_data):
        clone = store_with_data.copy()
        clone['NEW'] = 'v'
        assert 'NEW' not in store_with_data
        assert clone.created == store_with_data.created


class TestChangeTracking:
    """Tests for is_changed."""

    def test_same_value_is_not_a_change(self, store_with_data):
        store_with_data['KOMODO_API_KEY'] = 'K-1'
        assert store_with_data.is_changed is False

    def test_merge_marks_changed(self, store_with_data):
        store_with_data.merge({'KOMODO_API_KEY': 'K-2', 'KOMODO_API_SECRET': 'S'})
        assert store_with_data.is_changed is True
        assert store_with_data['KOMODO_API_KEY'] == 'K-2'
        assert store_with_data['KOMODO_API_SECRET'] == 'S'


class TestSerialization:
    """Tests for encode/decode."""

    def test_encode_is_canonical(self):
        a = SecretStore({'B': '2', 'A': '1'}, created=100)
        b = SecretStore({'A': '1', 'B': '2'}, created=100)
        assert a.encode() == b.encode()

    def test_decode_restores_awkward_values(self):
        values = {
            'QUOTED': 'say "hi" it\'s',
            'MULTILINE': 'line1\nline2\n',
            'SHELLY': '$(rm -rf /) `x` KEY="v"',
            'EMPTY': '',
            'UNICODE': 'contraseña-🔑',
        }
        restored = SecretStore.decode(SecretStore(values).encode())
        assert restored == values

    def test_decode_keeps_created(self):
        restored = SecretStore.decode(SecretStore(created=1700000000).encode())
        assert restored.created == 1700000000
        assert restored.empty is True

    @pytest.mark.parametrize("payload", [
        b"",
        b"not json",
        b"[]",
        orjson.dumps({"secrets": {}}),
        orjson.dumps({"created": 1, "secrets": []}),
        orjson.dumps({"created": "yesterday", "secrets": {}}),
        orjson.dumps({"created": 1, "secrets": {"A": 1}}),
        orjson.dumps({"created": 1, "secrets": {"bad name": "x"}}),
        orjson.dumps({"created": 1, "secrets": {}, "extra": True}),
    ])
    def test_decode_rejects_malformed(self, payload):
        with pytest.raises(ValueError):
            SecretStore.decode(payload)
