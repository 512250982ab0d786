import pytest

from mermaidman.core import GraphStore, parse_document
from mermaidman.http.store import DocumentConfig, DocumentRegistry

SIMPLE_DOC = (
    "graph TD\n"
    "A[Start] --> B[End]\n"
    "\n"
    '%% @node: A {"uid":"n_001","x":100,"y":50}\n'
    '%% @node: B {"uid":"n_002","x":200,"y":100}\n'
)

CHAIN_DOC = (
    "graph TD\n"
    "A[Start] --> B[Middle]\n"
    "B --> C[End]\n"
    "\n"
    '%% @node: A {"uid":"n_001","x":100,"y":50}\n'
    '%% @node: B {"uid":"n_002","x":200,"y":100}\n'
    '%% @node: C {"uid":"n_003","x":300,"y":150}\n'
)


def store_for(text: str) -> GraphStore:
    parsed = parse_document(text)
    return GraphStore.from_parsed(parsed.nodes, parsed.edges)


@pytest.fixture
def simple_store() -> GraphStore:
    return store_for(SIMPLE_DOC)


@pytest.fixture
def chain_store() -> GraphStore:
    return store_for(CHAIN_DOC)


@pytest.fixture
def registry() -> DocumentRegistry:
    return DocumentRegistry(DocumentConfig())
