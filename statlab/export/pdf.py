"""
PDF builder - Printable exercise sheets with reportlab.

Layout: a cover page with title and subtitle, then one section per
exercise (heading, difficulty/type badges, statement, requested solution
tiers) under a running header, with "Page i of n" footers after the cover.
Markdown is flattened to plain wrapped text and LaTeX math to Unicode,
drawn with DejaVu Sans when it is installed.
"""

import logging
import os
import re
from io import BytesIO
from pathlib import Path
from typing import Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont
from reportlab.pdfgen import canvas

from statlab.schemas import Difficulty, Exercise

from .selection import ExportSelection, SolutionDetail, solution_sections


logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN_X = 40
MARGIN_TOP = 50
MARGIN_BOTTOM = 50
CONTENT_WIDTH = PAGE_WIDTH - MARGIN_X * 2

FONT_DIR_ENV = "STATLAB_FONT_DIR"
FONT_DIRS = (
    "/usr/share/fonts/truetype/dejavu",
    "/usr/share/fonts/dejavu",
    "/usr/local/share/fonts",
    "/Library/Fonts",
    "C:/Windows/Fonts",
)
# Role -> (registered name, candidate files); a missing italic face reuses bold
TTF_FAMILY = {
    "body": ("StatLabSans", ("DejaVuSans.ttf",)),
    "bold": ("StatLabSans-Bold", ("DejaVuSans-Bold.ttf",)),
    "italic": ("StatLabSans-BoldOblique", ("DejaVuSans-BoldOblique.ttf",)),
    "mono": ("StatLabMono", ("DejaVuSansMono.ttf",)),
}
TYPE1_FAMILY = {
    "body": "Times-Roman",
    "bold": "Times-Bold",
    "italic": "Times-BoldItalic",
    "badge": "Helvetica",
    "mono": "Courier",
}


def _find_font(directory: Path, names: tuple[str, ...]) -> Optional[Path]:
    for name in names:
        path = directory / name
        if path.is_file():
            return path
    return None


def register_fonts(font_dirs: Optional[list] = None) -> dict[str, str]:
    """
    Register a Unicode TrueType family for the PDF writer.

    Searches STATLAB_FONT_DIR and then the usual system font folders for
    DejaVu Sans. Falls back to the built-in Type1 fonts, which only cover
    Latin-1, when no directory holds the regular, bold and mono faces.

    Returns:
        Mapping of role (body, bold, italic, badge, mono) to font name
    """
    if font_dirs is None:
        font_dirs = [os.environ[FONT_DIR_ENV]] if os.environ.get(FONT_DIR_ENV) else []
        font_dirs += list(FONT_DIRS)

    for directory in map(Path, font_dirs):
        found = {role: _find_font(directory, files) for role, (_, files) in TTF_FAMILY.items()}
        if not all(found[role] for role in ("body", "bold", "mono")):
            continue
        fonts = {}
        try:
            for role, path in found.items():
                if path is None:
                    continue
                name = TTF_FAMILY[role][0]
                pdfmetrics.registerFont(TTFont(name, str(path)))
                fonts[role] = name
        except (TTFError, OSError) as e:
            logger.warning(f"Could not load fonts from {directory}: {e}")
            continue
        fonts.setdefault("italic", fonts["bold"])
        fonts["badge"] = fonts["body"]
        logger.info(f"PDF fonts: TrueType from {directory}")
        return fonts

    logger.warning("No Unicode TrueType font found; PDF math symbols are transliterated")
    return dict(TYPE1_FAMILY)


FONTS = register_fonts()
UNICODE_FONTS = FONTS["body"] != TYPE1_FAMILY["body"]
BODY_FONT = FONTS["body"]
BOLD_FONT = FONTS["bold"]
ITALIC_FONT = FONTS["italic"]
BADGE_FONT = FONTS["badge"]
MONO_FONT = FONTS["mono"]

DIFFICULTY_COLORS = {
    Difficulty.EASY: ("#16a34a", "#f0fdf4"),
    Difficulty.MEDIUM: ("#d97706", "#fffbeb"),
    Difficulty.HARD: ("#dc2626", "#fef2f2"),
}
HEADER_COLOR = colors.HexColor("#64748b")
TITLE_COLOR = colors.HexColor("#1e3a8a")
TEXT_COLOR = colors.HexColor("#1f2937")


class NumberedCanvas(canvas.Canvas):
    """Canvas that defers pages so footers can show the total page count."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._saved_page_states = []

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        total = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            # No footer on the cover
            if self._pageNumber > 1:
                self._draw_page_number(total)
            super().showPage()
        super().save()

    def _draw_page_number(self, total: int):
        self.setFont(BODY_FONT, 8)
        self.setFillColor(HEADER_COLOR)
        self.drawCentredString(PAGE_WIDTH / 2, 20, f"Page {self._pageNumber} of {total}")


# -----------------------------------------------------------------------------
# LaTeX math flattening
# -----------------------------------------------------------------------------

LATEX_SYMBOLS = {
    "alpha": "α", "beta": "β", "gamma": "γ", "delta": "δ", "epsilon": "ε",
    "varepsilon": "ε", "theta": "θ", "lambda": "λ", "mu": "μ", "nu": "ν",
    "pi": "π", "rho": "ρ", "sigma": "σ", "tau": "τ", "phi": "φ", "chi": "χ",
    "psi": "ψ", "omega": "ω", "Gamma": "Γ", "Delta": "Δ", "Theta": "Θ",
    "Lambda": "Λ", "Pi": "Π", "Sigma": "Σ", "Phi": "Φ", "Omega": "Ω",
    "le": "≤", "leq": "≤", "ge": "≥", "geq": "≥", "ne": "≠", "neq": "≠",
    "approx": "≈", "sim": "~", "pm": "±", "times": "×", "cdot": "·",
    "div": "÷", "sum": "Σ", "prod": "Π", "int": "∫", "infty": "∞",
    "to": "→", "rightarrow": "→", "in": "∈", "partial": "∂",
    "ldots": "...", "cdots": "...", "dots": "...", "mid": "|",
    "left": "", "right": "", "quad": " ", "qquad": " ",
}
SUPERSCRIPTS = str.maketrans("0123456789+-=()ni", "⁰¹²³⁴⁵⁶⁷⁸⁹⁺⁻⁼⁽⁾ⁿⁱ")
SUBSCRIPTS = str.maketrans("0123456789+-=()aeoxijn", "₀₁₂₃₄₅₆₇₈₉₊₋₌₍₎ₐₑₒₓᵢⱼₙ")
SUPERSCRIPT_CHARS = set("0123456789+-=()ni")
SUBSCRIPT_CHARS = set("0123456789+-=()aeoxijn")
COMBINING_BAR = "\u0304"
COMBINING_HAT = "\u0302"

_ESCAPED = {"\\{": "\x00", "\\}": "\x01", "\\%": "%", "\\$": "$", "\\&": "&", "\\_": "\x02", "\\#": "#"}
_RESTORE = {"\x00": "{", "\x01": "}", "\x02": "_"}
_MATH_SEGMENT = re.compile(r"\$\$(.+?)\$\$|\$(.+?)\$|\\\((.+?)\\\)|\\\[(.+?)\\\]")
_GROUP = r"\{([^{}]*)\}"


def _grouped(text: str) -> str:
    """Parenthesize a fraction or root operand that is not a single token."""
    return text if re.fullmatch(r"[\w.\u0300-\u036f\u0370-\u03ff√]+", text) else f"({text})"


def _script(text: str, chars: set, table: dict, marker: str) -> str:
    if text and set(text) <= chars:
        return text.translate(table)
    return f"{marker}{_grouped(text)}"


def latex_to_unicode(text: str) -> str:
    """
    Flatten LaTeX math into plain Unicode text.

    Greek letters and operators become their symbols, \\bar and \\hat become
    combining accents, \\frac{a}{b} becomes a/b and simple exponents and
    indices become super/subscript characters. Unknown commands keep their
    name and braces are dropped.
    """
    for escaped, placeholder in _ESCAPED.items():
        text = text.replace(escaped, placeholder)
    text = re.sub(r"\\[,;:! ]|\\\\", " ", text)
    text = re.sub(
        r"\\([A-Za-z]+)",
        lambda m: LATEX_SYMBOLS.get(m.group(1), m.group(0)),
        text,
    )

    grouped_rules = (
        (re.compile(r"\\(?:text|mathrm|mathbf|mathit|operatorname)\s*" + _GROUP), lambda m: m.group(1)),
        (re.compile(r"\\(?:bar|overline)\s*" + _GROUP), lambda m: m.group(1) + COMBINING_BAR),
        (re.compile(r"\\(?:hat|widehat)\s*" + _GROUP), lambda m: m.group(1) + COMBINING_HAT),
        (re.compile(r"\\sqrt\s*" + _GROUP), lambda m: "√" + _grouped(m.group(1))),
        (re.compile(r"\\[dt]?frac\s*" + _GROUP + r"\s*" + _GROUP),
         lambda m: f"{_grouped(m.group(1))}/{_grouped(m.group(2))}"),
        (re.compile(r"\^" + _GROUP), lambda m: _script(m.group(1), SUPERSCRIPT_CHARS, SUPERSCRIPTS, "^")),
        (re.compile(r"_" + _GROUP), lambda m: _script(m.group(1), SUBSCRIPT_CHARS, SUBSCRIPTS, "_")),
    )
    # Innermost groups first until nothing changes
    changed = True
    while changed:
        changed = False
        for pattern, replace in grouped_rules:
            text, count = pattern.subn(replace, text)
            changed = changed or count > 0

    text = re.sub(r"\\(?:bar|overline)\s*(\w)", lambda m: m.group(1) + COMBINING_BAR, text)
    text = re.sub(r"\\(?:hat|widehat)\s*(\w)", lambda m: m.group(1) + COMBINING_HAT, text)
    text = re.sub(r"\\sqrt\s*(\w)", r"√\1", text)
    text = re.sub(r"\^(\w)", lambda m: _script(m.group(1), SUPERSCRIPT_CHARS, SUPERSCRIPTS, "^"), text)
    text = re.sub(r"_(\w)", lambda m: _script(m.group(1), SUBSCRIPT_CHARS, SUBSCRIPTS, "_"), text)

    text = re.sub(r"\\([A-Za-z]+)", r"\1", text)
    text = text.replace("{", "").replace("}", "")
    for placeholder, char in _RESTORE.items():
        text = text.replace(placeholder, char)
    return re.sub(r" {2,}", " ", text).strip()


def flatten_math(line: str) -> str:
    """Convert $...$, $$...$$, \\(...\\) and \\[...\\] segments of a line."""
    return _MATH_SEGMENT.sub(
        lambda m: latex_to_unicode(next(g for g in m.groups() if g is not None)),
        line,
    )


# Symbols outside Latin-1 spelled out for the Type1 fallback fonts
ASCII_FALLBACK = {
    "α": "alpha", "β": "beta", "γ": "gamma", "δ": "delta", "ε": "epsilon",
    "θ": "theta", "λ": "lambda", "μ": "mu", "ν": "nu", "π": "pi", "ρ": "rho",
    "σ": "sigma", "τ": "tau", "φ": "phi", "χ": "chi", "ψ": "psi", "ω": "omega",
    "Γ": "Gamma", "Δ": "Delta", "Θ": "Theta", "Λ": "Lambda", "Π": "Pi",
    "Σ": "Sum", "Φ": "Phi", "Ω": "Omega", "≤": "<=", "≥": ">=", "≠": "!=",
    "≈": "~", "∫": "integral", "∞": "infinity", "→": "->", "∈": " in ",
    "∂": "d", "√": "sqrt", COMBINING_BAR: "-bar", COMBINING_HAT: "-hat",
    "⁰": "^0", "⁴": "^4", "⁵": "^5", "⁶": "^6", "⁷": "^7", "⁸": "^8", "⁹": "^9",
    "⁺": "^+", "⁻": "^-", "⁼": "^=", "⁽": "^(", "⁾": ")", "ⁿ": "^n", "ⁱ": "^i",
    "₀": "_0", "₁": "_1", "₂": "_2", "₃": "_3", "₄": "_4", "₅": "_5", "₆": "_6",
    "₇": "_7", "₈": "_8", "₉": "_9", "₊": "_+", "₋": "_-", "₌": "_=", "₍": "_(",
    "₎": ")", "ₐ": "_a", "ₑ": "_e", "ₒ": "_o", "ₓ": "_x", "ᵢ": "_i", "ⱼ": "_j",
    "ₙ": "_n",
}


def fit_text(text: str, unicode_fonts: bool = UNICODE_FONTS) -> str:
    """
    Make text drawable with the registered fonts.

    TrueType fonts take the text as is; with the Type1 fallback every
    character outside cp1252 is spelled out or replaced with "?".
    """
    if unicode_fonts:
        return text
    out = []
    for char in text:
        try:
            char.encode("cp1252")
            out.append(char)
        except UnicodeEncodeError:
            out.append(ASCII_FALLBACK.get(char, "?"))
    return "".join(out)


# -----------------------------------------------------------------------------
# Markdown flattening
# -----------------------------------------------------------------------------

def markdown_to_lines(text: str) -> list[tuple[str, str]]:
    """
    Flatten markdown into (font, text) lines.

    Headings become bold lines, list markers become bullets, code fences
    switch to a monospace font; inline emphasis markers are dropped and
    LaTeX math is flattened to Unicode.
    """
    lines = []
    in_code = False
    for raw in text.splitlines():
        stripped = raw.strip()
        if stripped.startswith("```"):
            in_code = not in_code
            continue
        if in_code:
            lines.append((MONO_FONT, raw.rstrip() or " "))
            continue
        if not stripped:
            lines.append((BODY_FONT, " "))
            continue

        font = BODY_FONT
        heading = re.match(r"^#{1,6}\s+(.*)$", stripped)
        if heading:
            stripped, font = heading.group(1), BOLD_FONT
        stripped = re.sub(r"^[-*+]\s+", "• ", stripped)
        stripped = flatten_math(stripped)
        if re.search(r"\\[A-Za-z]", stripped):
            stripped = latex_to_unicode(stripped)
        stripped = re.sub(r"(\*\*|__|`)", "", stripped)
        stripped = re.sub(r"(?<!\w)[*_](\S.*?\S|\S)[*_](?!\w)", r"\1", stripped)
        lines.append((font, stripped))
    return lines


# -----------------------------------------------------------------------------
# Page writer
# -----------------------------------------------------------------------------

class _PageWriter:
    """Tracks the cursor and starts new pages with the running header."""

    def __init__(self, c: canvas.Canvas, selection: ExportSelection):
        self.c = c
        self.selection = selection
        self.y = PAGE_HEIGHT - MARGIN_TOP

    def new_page(self):
        self.c.showPage()
        self.y = PAGE_HEIGHT - MARGIN_TOP
        self._draw_header()

    def _draw_header(self):
        c = self.c
        c.setFont(BODY_FONT, 9)
        c.setFillColor(HEADER_COLOR)
        c.drawString(MARGIN_X, self.y, fit_text(self.selection.subtitle))
        c.drawRightString(PAGE_WIDTH - MARGIN_X, self.y, fit_text(self.selection.title))
        c.setStrokeColor(colors.HexColor("#d1d5db"))
        c.line(MARGIN_X, self.y - 6, PAGE_WIDTH - MARGIN_X, self.y - 6)
        self.y -= 30

    def ensure_space(self, height: float):
        if self.y - height < MARGIN_BOTTOM:
            self.new_page()

    def write_wrapped(self, text: str, font: str, size: float, leading: float, indent: float = 0):
        width = CONTENT_WIDTH - indent
        for line in simpleSplit(fit_text(text), font, size, width) or [" "]:
            self.ensure_space(leading)
            self.c.setFont(font, size)
            self.c.setFillColor(TEXT_COLOR)
            self.c.drawString(MARGIN_X + indent, self.y, line)
            self.y -= leading

    def write_markdown(self, text: str, size: float = 11, indent: float = 0):
        for font, line in markdown_to_lines(text):
            line_size = size - 1 if font == MONO_FONT else size
            self.write_wrapped(line, font, line_size, line_size + 4, indent)

    def write_badge(self, x: float, label: str, fg: str, bg: str) -> float:
        c = self.c
        width = c.stringWidth(label, BADGE_FONT, 9) + 16
        c.setFillColor(colors.HexColor(bg))
        c.setStrokeColor(colors.HexColor(fg))
        c.roundRect(x, self.y - 4, width, 15, 6, stroke=1, fill=1)
        c.setFillColor(colors.HexColor(fg))
        c.setFont(BADGE_FONT, 9)
        c.drawString(x + 8, self.y, label)
        return x + width + 8


def _draw_cover(c: canvas.Canvas, selection: ExportSelection):
    c.setFillColor(TITLE_COLOR)
    y = PAGE_HEIGHT / 2 + 20
    for line in simpleSplit(fit_text(selection.title), BOLD_FONT, 28, CONTENT_WIDTH):
        c.setFont(BOLD_FONT, 28)
        c.drawCentredString(PAGE_WIDTH / 2, y, line)
        y -= 34
    c.setFillColor(colors.HexColor("#4b5563"))
    for line in simpleSplit(fit_text(selection.subtitle), BODY_FONT, 18, CONTENT_WIDTH):
        c.setFont(BODY_FONT, 18)
        c.drawCentredString(PAGE_WIDTH / 2, y - 6, line)
        y -= 24


def _draw_exercise(writer: _PageWriter, number: int, exercise: Exercise, detail: SolutionDetail):
    # Keep heading and badges together
    writer.ensure_space(60)
    c = writer.c
    c.setFont(BOLD_FONT, 16)
    c.setFillColor(colors.HexColor("#1e293b"))
    c.drawString(MARGIN_X, writer.y, f"Exercise {number}")
    c.setStrokeColor(colors.HexColor("#d1d5db"))
    c.line(MARGIN_X, writer.y - 5, PAGE_WIDTH - MARGIN_X, writer.y - 5)
    writer.y -= 26

    fg, bg = DIFFICULTY_COLORS.get(exercise.difficulty, ("#374151", "#f3f4f6"))
    x = writer.write_badge(MARGIN_X, exercise.difficulty.value, fg, bg)
    writer.write_badge(x, exercise.type.value, "#374151", "#f3f4f6")
    writer.y -= 24

    writer.write_markdown(exercise.problem_statement)

    for title, body in solution_sections(exercise, detail):
        writer.y -= 6
        writer.write_wrapped(title, ITALIC_FONT, 11, 15, indent=12)
        writer.write_markdown(body, size=10, indent=12)

    writer.y -= 18


def build_exercise_pdf(
    selection: ExportSelection,
    detail: SolutionDetail | str = SolutionDetail.FULL,
) -> bytes:
    """
    Render an exercise sheet.

    Args:
        selection: Exercises with the sheet's title and subtitle
        detail: Solution tiers to include after each statement

    Returns:
        PDF file contents
    """
    detail = SolutionDetail(detail)
    buffer = BytesIO()
    c = NumberedCanvas(buffer, pagesize=A4)
    c.setTitle(selection.title)

    _draw_cover(c, selection)
    writer = _PageWriter(c, selection)
    writer.new_page()

    for number, exercise in enumerate(selection.exercises, 1):
        _draw_exercise(writer, number, exercise, detail)

    # Pages are only written out once shown
    c.showPage()
    c.save()
    logger.info(
        f"Built PDF '{selection.title}' with {len(selection.exercises)} exercises "
        f"(solutions: {detail.value})"
    )
    buffer.seek(0)
    return buffer.read()
