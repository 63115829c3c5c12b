"""Common literal values used across sitepress.

These constants keep marker strings, default names, and file patterns
centralized so the pipeline, engines, and tests can import the same values
without drifting. Intended for internal use within the sitepress package.

Examples
--------
>>> from sitepress import _constants
>>> _constants.ERROR_MARKER in "<!-- __SITEPRESS_ERROR__ --><p>oops</p>"
True
>>> _constants.DEFAULT_LAYOUT
'default'
"""

ERROR_MARKER = "<!-- __SITEPRESS_ERROR__ -->"
DEFAULT_LAYOUT = "default"
PAGE_EXTENSION = ".html"
CONFIG_FILENAME = "sitepress.yaml"
METADATA_SYNTAX_ERROR = "metadata-syntax-error"

TEMPLATE_SUFFIXES = frozenset({".html", ".htm", ".jinja", ".j2"})
DATA_SUFFIXES = frozenset({".json", ".yml", ".yaml"})
ROOT_DATA_NAME = "data"
