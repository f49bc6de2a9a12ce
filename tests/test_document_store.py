"""
Document Store Tests

Exercise DocumentStore against a mocked AsyncSession, so no database is
needed.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.exc import IntegrityError, OperationalError

from pdf_qa_server.core.errors import StorageError, StoreUnavailableError
from pdf_qa_server.db.document_store import DocumentStore, open_document_store
from pdf_qa_server.db.models import Document
from pdf_qa_server.models import DocumentRow

DIM = 4


# Helper to create mock DB rows
class MockRow:
    def __init__(self, **kwargs):
        for k, v in kwargs.items():
            setattr(self, k, v)


@pytest.fixture
def mock_session():
    session = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def store(mock_session):
    return DocumentStore(mock_session, dimension=DIM)


def make_row(content="Some chunk text", embedding=None, page_num=1):
    return DocumentRow(
        file_name="manual.pdf",
        page_num=page_num,
        content=content,
        embedding=embedding if embedding is not None else [0.5] * DIM,
    )


def _assign_id(session, doc_id):
    async def _flush():
        session.add.call_args[0][0].id = doc_id
    session.flush.side_effect = _flush


# ---------------------------------------------------------------------
# insert
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_insert_adds_commits_and_returns_id(store, mock_session):
    _assign_id(mock_session, 17)

    doc_id = await store.insert(make_row(page_num=3))

    assert doc_id == 17
    record = mock_session.add.call_args[0][0]
    assert isinstance(record, Document)
    assert record.file_name == "manual.pdf"
    assert record.page_num == 3
    assert record.content == "Some chunk text"
    assert list(record.embedding) == [0.5] * DIM
    mock_session.commit.assert_awaited_once()


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["", "   "])
async def test_insert_rejects_empty_content_before_write(store, mock_session, content):
    with pytest.raises(StorageError):
        await store.insert(make_row(content=content))

    mock_session.add.assert_not_called()
    mock_session.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_insert_rejects_wrong_dimension_before_write(store, mock_session):
    with pytest.raises(StorageError) as exc_info:
        await store.insert(make_row(embedding=[0.1] * (DIM + 1)))

    assert "dimension" in exc_info.value.message
    mock_session.add.assert_not_called()


@pytest.mark.asyncio
async def test_insert_database_error_is_storage_error(store, mock_session):
    mock_session.commit.side_effect = IntegrityError("INSERT", {}, Exception("dup"))

    with pytest.raises(StorageError) as exc_info:
        await store.insert(make_row())

    assert not isinstance(exc_info.value, StoreUnavailableError)
    mock_session.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_insert_connection_failure_is_store_unavailable(store, mock_session):
    mock_session.flush.side_effect = OperationalError("INSERT", {}, Exception("down"))

    with pytest.raises(StoreUnavailableError):
        await store.insert(make_row())

    mock_session.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_insert_refused_connection_is_store_unavailable(store, mock_session):
    mock_session.flush.side_effect = ConnectionRefusedError("refused")

    with pytest.raises(StoreUnavailableError):
        await store.insert(make_row())


# ---------------------------------------------------------------------
# similarity_search
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_similarity_search_maps_rows(store, mock_session):
    result = MagicMock()
    result.all.return_value = [
        MockRow(id=1, file_name="a.pdf", page_num=2, content="alpha", similarity=0.91),
        MockRow(id=5, file_name="b.pdf", page_num=7, content="beta", similarity=1.0000001),
    ]
    mock_session.execute.return_value = result

    matches = await store.similarity_search([0.1] * DIM, threshold=0.6, limit=8)

    assert [m.document.id for m in matches] == [1, 5]
    assert matches[0].document.file_name == "a.pdf"
    assert matches[0].similarity == pytest.approx(0.91)
    # floating point noise above 1 is clamped
    assert matches[1].similarity == 1.0
    mock_session.execute.assert_awaited_once()


@pytest.mark.asyncio
async def test_similarity_search_no_rows(store, mock_session):
    result = MagicMock()
    result.all.return_value = []
    mock_session.execute.return_value = result

    assert await store.similarity_search([0.1] * DIM, threshold=0.8, limit=8) == []


@pytest.mark.asyncio
async def test_similarity_search_zero_limit_skips_query(store, mock_session):
    assert await store.similarity_search([0.1] * DIM, threshold=0.6, limit=0) == []
    mock_session.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_similarity_search_failure_is_storage_error(store, mock_session):
    mock_session.execute.side_effect = IntegrityError("SELECT", {}, Exception("boom"))

    with pytest.raises(StorageError):
        await store.similarity_search([0.1] * DIM, threshold=0.6, limit=8)


# ---------------------------------------------------------------------
# status queries
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_count(store, mock_session):
    result = MagicMock()
    result.scalar.return_value = 12
    mock_session.execute.return_value = result

    assert await store.count() == 12
    assert await store.count(file_name="a.pdf") == 12


@pytest.mark.asyncio
async def test_list_files(store, mock_session):
    result = MagicMock()
    result.all.return_value = [
        MockRow(file_name="a.pdf", chunks=3),
        MockRow(file_name="b.pdf", chunks=9),
    ]
    mock_session.execute.return_value = result

    assert await store.list_files() == {"a.pdf": 3, "b.pdf": 9}


@pytest.mark.asyncio
async def test_open_document_store_uses_fresh_session(mock_session):
    session_cm = MagicMock()
    session_cm.__aenter__ = AsyncMock(return_value=mock_session)
    session_cm.__aexit__ = AsyncMock(return_value=False)
    factory = MagicMock(return_value=session_cm)

    async with open_document_store(factory) as store:
        assert isinstance(store, DocumentStore)

    factory.assert_called_once_with()
    session_cm.__aexit__.assert_awaited_once()
