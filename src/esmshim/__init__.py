from .jsmodule import ModuleSyntaxError, default_strategy, parse_module, passthrough_strategy, transform_js_module
from .plugins import TRANSFORM_MODULES_AMD, TRANSFORM_REGENERATOR, Capabilities, contains_plugin
from .polyfills import PolyfillError
from .serialize import to_html
from .transform import get_base_url, transform_html
from .utils import append_query_parameter, preserve_surrounding_whitespace

__all__ = [
    "TRANSFORM_MODULES_AMD",
    "TRANSFORM_REGENERATOR",
    "Capabilities",
    "ModuleSyntaxError",
    "PolyfillError",
    "append_query_parameter",
    "contains_plugin",
    "default_strategy",
    "get_base_url",
    "parse_module",
    "passthrough_strategy",
    "preserve_surrounding_whitespace",
    "to_html",
    "transform_html",
    "transform_js_module",
]
