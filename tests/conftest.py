import pytest

from nedict.store import Store

HEADER = "word,phonetic,definition,translation,frq,exchange"


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "ecdict.sqlite")


@pytest.fixture
def store(db_path):
    s = Store.open(db_path)
    yield s
    s.close()


@pytest.fixture
def write_csv(tmp_path):
    """Write CSV text to a file and return its path."""
    def _write(text, name="ecdict.csv", encoding="utf-8"):
        p = tmp_path / name
        p.write_bytes(text.encode(encoding) if isinstance(text, str) else text)
        return str(p)
    return _write


def fill(store, words):
    """Put {word: frq} (or {word: record}) entries through one batch."""
    def load(batch):
        for word, value in words.items():
            record = value if isinstance(value, dict) else {"frq": str(value)}
            batch.put(word, record)
    store.run_batch(load)
