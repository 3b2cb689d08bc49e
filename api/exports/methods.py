"""Engine selection, time estimates and the capability table served to UIs."""

from __future__ import annotations

from .options import ExportMethod

# More sections than this pushes 'auto' to the browser engine.
BROWSER_SECTION_THRESHOLD = 5


def select_method(proposal, requested: ExportMethod) -> str:
    """Resolve ``auto`` to a concrete engine; explicit choices pass through."""
    if requested is not ExportMethod.AUTO:
        return requested.value
    if len(proposal.section_items()) > BROWSER_SECTION_THRESHOLD or proposal.visual_count() > 0:
        return ExportMethod.BROWSER.value
    # Text-heavy proposals convert faster and more faithfully through the office suite
    return ExportMethod.OFFICE.value


def estimate_generation_time(proposal, method: str) -> int:
    """Advisory duration in milliseconds."""
    base = 3000
    sections = len(proposal.section_items()) * 500
    visuals = proposal.visual_count() * 1000
    multiplier = 1.5 if method == ExportMethod.BROWSER.value else 1.0
    return int(round((base + sections + visuals) * multiplier))


METHOD_CAPABILITIES = {
    'browser': {
        'name': 'Headless browser (Modern)',
        'description': 'HTML to PDF using headless Chrome. Best for complex layouts, charts, and modern designs.',
        'pros': ['Full CSS rendering', 'Chart and diagram support', 'Custom fonts and modern layouts'],
        'cons': ['Slightly slower', 'Higher memory usage', 'Requires Chrome'],
        'estimatedTime': '5-10 seconds',
        'quality': 'Excellent',
        'support': {
            'charts': True,
            'diagrams': True,
            'customFonts': True,
            'complexLayouts': True,
            'tableOfContents': True,
            'pageNumbers': False,
        },
    },
    'office': {
        'name': 'Office suite (Compatible)',
        'description': 'DOCX to PDF conversion with LibreOffice. Fastest for text-heavy proposals.',
        'pros': ['Fast generation', 'Low memory usage', 'Maximum compatibility'],
        'cons': ['Limited chart support', 'Basic layout only'],
        'estimatedTime': '2-5 seconds',
        'quality': 'Good',
        'support': {
            'charts': False,
            'diagrams': False,
            'customFonts': False,
            'complexLayouts': False,
            'tableOfContents': True,
            'pageNumbers': True,
        },
    },
    'auto': {
        'name': 'Auto (Recommended)',
        'description': 'Picks the browser engine for long or visual proposals and the office suite otherwise.',
        'pros': ['Best engine for the content', 'No manual selection needed'],
        'cons': ['Less predictable timing'],
        'estimatedTime': '2-10 seconds',
        'quality': 'Optimal',
        'support': {
            'charts': True,
            'diagrams': True,
            'customFonts': True,
            'complexLayouts': True,
            'tableOfContents': True,
            'pageNumbers': True,
        },
    },
}
