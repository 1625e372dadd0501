"""
Luminarias: extract hand-painted serial codes from street-light photographs.

Basic usage:
    >>> from luminarias.extraction import GeminiBackend
    >>> from luminarias.session import Workspace
    >>>
    >>> workspace = Workspace.open(Path("~/.luminarias/store").expanduser())
    >>> workspace.add_files([Path("IMG_0001.jpg")])
    >>> workspace.use_backend(GeminiBackend())
    >>> for event in workspace.process(api_key):
    ...     print(event.kind, event.position, event.total)
"""

__version__ = "0.1.0"
