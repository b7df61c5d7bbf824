from .html import apply_seo, session_directory, write_document, write_session

__all__ = ["apply_seo", "session_directory", "write_document", "write_session"]
