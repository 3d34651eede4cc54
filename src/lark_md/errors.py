"""Exception types for lark-md."""


class LarkMarkdownError(Exception):
    """Base class for errors raised by lark-md."""


class UnsupportedDocumentError(LarkMarkdownError):
    """The input is not a docx page that can be exported."""


class DocumentNotReadyError(LarkMarkdownError):
    """Part of the document is still loading (a top-level block is pending)."""


class SnapshotError(LarkMarkdownError):
    """A block snapshot file could not be read or parsed."""


class DownloadCancelled(LarkMarkdownError):
    """A media download was cancelled through its CancelToken.

    Cancellation is not a failure and is never reported as one.
    """
