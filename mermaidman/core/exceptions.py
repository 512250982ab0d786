"""Custom exceptions for diagram store operations."""


class MermaidmanError(Exception):
    """Base exception for mermaidman operations."""
    pass


class StoreDecodeError(MermaidmanError):
    """Raised when a persisted store blob cannot be decoded."""
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Invalid store blob: {detail}")


class NodeNotFoundError(MermaidmanError):
    """Raised when a node is not found."""
    def __init__(self, doc_id: str, uid: str):
        self.doc_id = doc_id
        self.uid = uid
        super().__init__(f"Node '{uid}' not found in document '{doc_id}'")


class EdgeNotFoundError(MermaidmanError):
    """Raised when an edge is not found."""
    def __init__(self, doc_id: str, eid: str):
        self.doc_id = doc_id
        self.eid = eid
        super().__init__(f"Edge '{eid}' not found in document '{doc_id}'")


class DocumentNotFoundError(MermaidmanError):
    """Raised when a document is not open."""
    def __init__(self, doc_id: str):
        self.doc_id = doc_id
        super().__init__(f"Document not open: {doc_id}")
