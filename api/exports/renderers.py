from __future__ import annotations

import base64
import html
import logging
import subprocess
import tempfile
import zipfile
from datetime import datetime, timezone
from io import BytesIO
from pathlib import Path

from docx import Document
from docx.enum.section import WD_ORIENT
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Mm, Pt

from app.common.files import compute_checksum

from .options import ExportOptions, ExportQuality

logger = logging.getLogger(__name__)

DOC_AUTHOR = 'Proposal Studio'
A4_MM = (210, 297)


class RenderError(Exception):
    """A rendering engine failed to produce a PDF."""


def _section_title(key: str, section: dict) -> str:
    return str(section.get('title') or key.replace('_', ' ').replace('-', ' ').title())


# --- HTML (browser engine input) ---------------------------------------------

def render_html(proposal, options: ExportOptions) -> str:
    """Print-ready HTML for the headless browser engine. All proposal text is escaped."""
    title = html.escape(proposal.display_title, quote=False)
    client = html.escape(proposal.client_company or '', quote=False)
    sections = proposal.section_items()
    m = options.margins
    size = 'A4 landscape' if options.landscape else 'A4'
    css = [
        f'@page {{ size: {size}; margin: {m.top}mm {m.right}mm {m.bottom}mm {m.left}mm; }}',
        'body { font-family: "Helvetica Neue", Arial, sans-serif; font-size: 11pt; line-height: 1.45; }',
        '.cover { page-break-after: always; padding-top: 30%; text-align: center; }',
        'section { page-break-inside: avoid; }',
        '.toc { page-break-after: always; }',
        '.content { white-space: pre-wrap; }',
    ]
    if options.quality is ExportQuality.DRAFT:
        css.append('img, svg { display: none; }')

    parts = [
        '<!DOCTYPE html>',
        '<html lang="en"><head><meta charset="utf-8">',
        f'<title>{title}</title>',
        f'<style>{" ".join(css)}</style>',
        '</head><body>',
        f'<div class="cover"><h1>{title}</h1>' + (f'<p class="client">{client}</p>' if client else '') + '</div>',
    ]
    if options.include_toc and sections:
        parts.append('<nav class="toc"><h2>Table of Contents</h2><ol>')
        for key, section in sections:
            anchor = html.escape(key, quote=True)
            parts.append(f'<li><a href="#{anchor}">{html.escape(_section_title(key, section), quote=False)}</a></li>')
        parts.append('</ol></nav>')
    for key, section in sections:
        anchor = html.escape(key, quote=True)
        heading = html.escape(_section_title(key, section), quote=False)
        body = html.escape(str(section.get('content') or ''), quote=False)
        parts.append(f'<section id="{anchor}"><h2>{heading}</h2><div class="content">{body}</div></section>')
    if options.header_footer:
        parts.append(f'<footer><span>{title}</span></footer>')
    parts.append('</body></html>')
    return '\n'.join(parts)


# --- DOCX (office engine input, also served directly) -------------------------

def _add_field(paragraph, instruction: str) -> None:
    """Append a complex Word field (PAGE, TOC, ...) to ``paragraph``."""
    run = paragraph.add_run()
    begin = OxmlElement('w:fldChar')
    begin.set(qn('w:fldCharType'), 'begin')
    instr = OxmlElement('w:instrText')
    instr.set(qn('xml:space'), 'preserve')
    instr.text = instruction
    separate = OxmlElement('w:fldChar')
    separate.set(qn('w:fldCharType'), 'separate')
    end = OxmlElement('w:fldChar')
    end.set(qn('w:fldCharType'), 'end')
    run._r.append(begin)
    run._r.append(instr)
    run._r.append(separate)
    run._r.append(end)


def _normalize_docx_zip(data: bytes) -> bytes:
    # Fixed timestamps and sorted entries so identical input gives identical bytes
    src = BytesIO(data)
    out_bio = BytesIO()
    with zipfile.ZipFile(src, 'r') as zin, zipfile.ZipFile(out_bio, 'w', compression=zipfile.ZIP_DEFLATED) as zout:
        for name in sorted(zin.namelist()):
            zi = zipfile.ZipInfo(filename=name, date_time=(1980, 1, 1, 0, 0, 0))
            zi.compress_type = zipfile.ZIP_DEFLATED
            zi.external_attr = 0o600 << 16
            zout.writestr(zi, zin.read(name))
    return out_bio.getvalue()


def render_docx(proposal, options: ExportOptions) -> tuple[bytes, str]:
    """Render the proposal as DOCX; returns ``(data, sha256 hex)``."""
    doc = Document()
    try:  # Styles may not always be mutable
        doc.styles['Normal'].font.size = Pt(11)  # type: ignore[index,attr-defined]
    except Exception:  # pragma: no cover - defensive
        pass

    section = doc.sections[0]
    width_mm, height_mm = A4_MM
    if options.landscape:
        section.orientation = WD_ORIENT.LANDSCAPE
        width_mm, height_mm = height_mm, width_mm
    section.page_width = Mm(width_mm)
    section.page_height = Mm(height_mm)
    m = options.margins
    section.top_margin = Mm(m.top)
    section.right_margin = Mm(m.right)
    section.bottom_margin = Mm(m.bottom)
    section.left_margin = Mm(m.left)

    if options.header_footer:
        section.header.paragraphs[0].text = proposal.display_title
        if proposal.client_company:
            section.footer.paragraphs[0].text = proposal.client_company
    if options.include_page_numbers:
        footer_p = section.footer.add_paragraph()
        footer_p.alignment = WD_ALIGN_PARAGRAPH.RIGHT
        _add_field(footer_p, 'PAGE')

    title = doc.add_heading(proposal.display_title, level=0)
    title.alignment = WD_ALIGN_PARAGRAPH.CENTER
    if proposal.client_company:
        sub = doc.add_paragraph(proposal.client_company)
        sub.alignment = WD_ALIGN_PARAGRAPH.CENTER

    sections = proposal.section_items()
    if options.include_toc and sections:
        doc.add_heading('Table of Contents', level=1)
        _add_field(doc.add_paragraph(), 'TOC \\o "1-3" \\h \\z \\u')
        doc.add_page_break()

    for key, sec in sections:
        doc.add_heading(_section_title(key, sec), level=1)
        for line in str(sec.get('content') or '').splitlines():
            doc.add_paragraph(line.rstrip())

    try:
        core = doc.core_properties
        core.title = proposal.display_title
        core.author = DOC_AUTHOR
        epoch = datetime(1970, 1, 1, tzinfo=timezone.utc)
        core.created = epoch
        core.modified = epoch
        core.last_printed = epoch
    except Exception:  # pragma: no cover - defensive
        pass

    bio = BytesIO()
    doc.save(bio)
    data = _normalize_docx_zip(bio.getvalue())
    return data, compute_checksum(data).hex


# --- PDF engines --------------------------------------------------------------

class BrowserRenderer:
    """Headless Chrome (Selenium) printing of ``render_html`` output."""

    method = 'browser'

    def __init__(self, chrome_binary: str = '', page_load_timeout: int = 60):
        self.chrome_binary = chrome_binary
        self.page_load_timeout = page_load_timeout

    def _driver(self):
        from selenium import webdriver
        from selenium.webdriver.chrome.options import Options

        opts = Options()
        opts.add_argument('--headless=new')
        opts.add_argument('--no-sandbox')
        opts.add_argument('--disable-dev-shm-usage')
        if self.chrome_binary:
            opts.binary_location = self.chrome_binary
        driver = webdriver.Chrome(options=opts)
        driver.set_page_load_timeout(self.page_load_timeout)
        return driver

    def render(self, proposal, options: ExportOptions) -> bytes:
        from selenium.common.exceptions import WebDriverException
        from selenium.webdriver.common.print_page_options import PrintOptions

        logger.info('[export.render] browser proposal=%s quality=%s', proposal.pk, options.quality.value)
        markup = render_html(proposal, options)
        with tempfile.TemporaryDirectory(prefix='proposal-browser-') as tmp:
            page = Path(tmp) / 'proposal.html'
            page.write_text(markup, encoding='utf-8')
            driver = None
            try:
                driver = self._driver()
                driver.get(page.as_uri())
                po = PrintOptions()
                po.orientation = 'landscape' if options.landscape else 'portrait'
                po.page_width = A4_MM[0] / 10  # cm
                po.page_height = A4_MM[1] / 10
                m = options.margins
                po.margin_top = m.top / 10
                po.margin_right = m.right / 10
                po.margin_bottom = m.bottom / 10
                po.margin_left = m.left / 10
                po.background = options.quality is not ExportQuality.DRAFT
                encoded = driver.print_page(po)
            except WebDriverException as exc:
                raise RenderError(f'Headless browser rendering failed: {exc.msg or exc}') from exc
            finally:
                if driver is not None:
                    driver.quit()
        return base64.b64decode(encoded)


class OfficeRenderer:
    """LibreOffice headless conversion of ``render_docx`` output."""

    method = 'office'
    JPEG_QUALITY = {
        ExportQuality.DRAFT: 50,
        ExportQuality.STANDARD: 80,
        ExportQuality.HIGH: 95,
    }

    def __init__(self, binary: str = 'libreoffice', timeout: int = 60):
        self.binary = binary
        self.timeout = timeout

    def command(self, docx_path: Path, outdir: Path, options: ExportOptions) -> list[str]:
        quality = self.JPEG_QUALITY[options.quality]
        pdf_filter = 'pdf:writer_pdf_Export:{"Quality":{"type":"long","value":"%d"}}' % quality
        return [
            self.binary,
            # Private profile per conversion; concurrent workers otherwise fight over the user lock
            f'-env:UserInstallation={(outdir / "profile").as_uri()}',
            '--headless',
            '--convert-to',
            pdf_filter,
            '--outdir',
            str(outdir),
            str(docx_path),
        ]

    def render(self, proposal, options: ExportOptions) -> bytes:
        logger.info('[export.render] office proposal=%s quality=%s', proposal.pk, options.quality.value)
        docx_bytes, _checksum = render_docx(proposal, options)
        with tempfile.TemporaryDirectory(prefix='proposal-office-') as tmp:
            outdir = Path(tmp)
            docx_path = outdir / 'proposal.docx'
            docx_path.write_bytes(docx_bytes)
            try:
                subprocess.run(
                    self.command(docx_path, outdir, options),
                    capture_output=True,
                    timeout=self.timeout,
                    check=True,
                )
            except FileNotFoundError as exc:
                raise RenderError(f'LibreOffice is not installed ({self.binary})') from exc
            except subprocess.TimeoutExpired as exc:
                raise RenderError(f'LibreOffice conversion timed out after {self.timeout}s') from exc
            except subprocess.CalledProcessError as exc:
                stderr = (exc.stderr or b'').decode('utf-8', errors='replace').strip()
                raise RenderError(f'LibreOffice conversion failed: {stderr[:500] or exc.returncode}') from exc
            pdf_path = outdir / 'proposal.pdf'
            if not pdf_path.exists():
                raise RenderError('LibreOffice did not produce a PDF')
            return pdf_path.read_bytes()


def get_renderer(method: str):
    from django.conf import settings

    if method == 'browser':
        return BrowserRenderer(
            chrome_binary=getattr(settings, 'CHROME_BINARY', ''),
            page_load_timeout=int(getattr(settings, 'CHROME_PAGE_LOAD_TIMEOUT', 60)),
        )
    if method == 'office':
        return OfficeRenderer(
            binary=getattr(settings, 'LIBREOFFICE_BIN', 'libreoffice'),
            timeout=int(getattr(settings, 'LIBREOFFICE_TIMEOUT', 60)),
        )
    raise RenderError(f'Unknown PDF generation method: {method}')
