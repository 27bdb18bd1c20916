#!/usr/bin/env python3
"""
Static code block generator.
Wraps fenced code in the HTML structure expected by the layouts, optionally
running it through highlight.js under Node.
"""

import logging
import subprocess
import sys
from html import escape

logger = logging.getLogger(__name__)

HIGHLIGHTERS = ("none", "hljs")

# Reads the language from argv and the code from stdin.
HLJS_SCRIPT = """
const hljs = require('highlight.js');
const language = process.argv[1];
let code = '';
process.stdin.on('data', (chunk) => { code += chunk; });
process.stdin.on('end', () => {
  const result = hljs.getLanguage(language)
    ? hljs.highlight(code, { language })
    : hljs.highlightAuto(code);
  process.stdout.write(result.value);
});
"""


def highlight_code(code: str, language: str) -> str:
    """
    Highlight code using highlight.js through Node.

    Args:
        code: The source code to highlight
        language: Programming language identifier

    Returns:
        HTML string with syntax highlighting applied, or the escaped code
        when Node or highlight.js is unavailable
    """
    try:
        result = subprocess.run(
            ["node", "-e", HLJS_SCRIPT, language],
            input=code,
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout.rstrip("\n")
    except subprocess.CalledProcessError as e:
        logger.warning("Failed to highlight %s code: %s", language, e.stderr.strip())
        return escape(code)
    except FileNotFoundError:
        logger.warning("Node.js not found; install it and run `npm install -g highlight.js`")
        return escape(code)


def format_code_block(code: str, language: str, highlighter: str = "none") -> str:
    """
    Generate complete HTML structure for a code block.

    The code is never interpreted: without a highlighter it is only
    HTML-escaped, so markdown characters such as ``*`` and ``[`` survive
    unchanged.

    Args:
        code: The source code
        language: Programming language identifier from the fence
        highlighter: ``"none"`` or ``"hljs"``

    Returns:
        Complete HTML with proper structure matching site design
    """
    if highlighter not in HIGHLIGHTERS:
        raise ValueError(f"Unknown highlighter '{highlighter}', expected one of {HIGHLIGHTERS}")

    code = code.rstrip("\n")
    if highlighter == "hljs":
        body = highlight_code(code, language)
        css_class = f"language-{escape(language)} hljs"
    else:
        body = escape(code, quote=False)
        css_class = f"language-{escape(language)}"

    return f"""<div class="code-block">
    <span class="code-language-tag">{escape(language)}</span>
    <div class="code-scroll">
        <pre><code class="{css_class}">{body}</code></pre>
    </div>
</div>"""


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python highlight_code.py <language> [highlighter]", file=sys.stderr)
        print("  Reads code from stdin, outputs HTML to stdout", file=sys.stderr)
        sys.exit(1)

    language = sys.argv[1]
    highlighter = sys.argv[2] if len(sys.argv) > 2 else "none"
    code = sys.stdin.read()

    print(format_code_block(code, language, highlighter))
