import csv
from decimal import Decimal
from io import BytesIO, StringIO

from django.conf import settings
from django.http import HttpResponse
from django.utils import timezone
from PIL import Image, ImageDraw, ImageFont

PDF_ROWS_PER_PAGE = 40
PAGE_WIDTH = 1800
MARGIN = 20
ROW_HEIGHT = 36
CHAR_WIDTH = 7
MAX_CELL_CHARS = 40
SHADE = (238, 242, 247)


def rows_to_csv_bytes(headers, rows):
    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerow(headers)
    writer.writerows(rows)
    return buffer.getvalue().encode('utf-8')


def images_to_pdf_bytes(images):
    if not images:
        return b''
    pages = [page.convert('RGB') for page in images]
    buffer = BytesIO()
    pages[0].save(buffer, format='PDF', save_all=True, append_images=pages[1:])
    return buffer.getvalue()


def _cell_text(value):
    if value is None:
        return ''
    text = str(value)
    if len(text) > MAX_CELL_CHARS:
        return text[:MAX_CELL_CHARS - 3] + '...'
    return text


def _is_number(value):
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _column_widths(headers, rows):
    """Share the page width in proportion to the longest text in each column."""
    longest = [len(_cell_text(header)) for header in headers]
    for row in rows:
        for idx, value in enumerate(row[:len(longest)]):
            longest[idx] = max(longest[idx], len(_cell_text(value)))

    available = PAGE_WIDTH - 2 * MARGIN
    weights = [max(4, length) for length in longest] or [1]
    total = sum(weights)
    return [available * weight // total for weight in weights]


def _draw_cell(draw, font, box, value, *, bold=False):
    x1, y1, x2, y2 = box
    text = _cell_text(value)
    if _is_number(value):
        # Amounts line up on the right edge.
        x = max(x1 + 6, x2 - 6 - len(text) * CHAR_WIDTH)
    else:
        x = x1 + 6
    draw.text((x, y1 + 11), text, fill='black', font=font)
    if bold:
        draw.text((x + 1, y1 + 11), text, fill='black', font=font)


def _table_page_image(title, headers, rows, widths, footer):
    font = ImageFont.load_default()
    top = 70
    height = top + ROW_HEIGHT * (len(rows) + 1) + 60

    image = Image.new('RGB', (PAGE_WIDTH, height), 'white')
    draw = ImageDraw.Draw(image)
    draw.text((MARGIN, 14), settings.FEEDESK_SCHOOL_NAME, fill='black', font=font)
    draw.text((MARGIN, 38), title, fill='black', font=font)

    lines = [headers] + list(rows)
    y = top
    for line_number, line in enumerate(lines):
        x = MARGIN
        if line_number and line_number % 2 == 0:
            draw.rectangle((MARGIN, y, PAGE_WIDTH - MARGIN, y + ROW_HEIGHT), fill=SHADE)
        for idx, width in enumerate(widths):
            value = line[idx] if idx < len(line) else ''
            box = (x, y, x + width, y + ROW_HEIGHT)
            draw.rectangle(box, outline='black')
            _draw_cell(draw, font, box, value, bold=line_number == 0)
            x += width
        y += ROW_HEIGHT

    draw.text((MARGIN, y + 20), footer, fill='black', font=font)
    return image


def table_pdf_bytes(title, headers, rows):
    rows = [list(row) for row in rows]
    widths = _column_widths(headers, rows)
    pages = [rows[start:start + PDF_ROWS_PER_PAGE] for start in range(0, len(rows), PDF_ROWS_PER_PAGE)] or [[]]
    generated = f"Generated {timezone.localtime():%d/%m/%Y %H:%M}"

    images = [
        _table_page_image(title, headers, page_rows, widths, f"{generated}  |  Page {number} of {len(pages)}")
        for number, page_rows in enumerate(pages, start=1)
    ]
    return images_to_pdf_bytes(images)


def export_filename(base):
    return f"{base}_{timezone.localdate():%Y-%m-%d}"


def response_for_export(*, title, headers, rows, filename_base, export_type):
    """CSV or PDF download of a table, or None for any other export type."""
    if export_type == 'csv':
        content, content_type = rows_to_csv_bytes(headers, rows), 'text/csv'
    elif export_type == 'pdf':
        content, content_type = table_pdf_bytes(title=title, headers=headers, rows=rows), 'application/pdf'
    else:
        return None

    response = HttpResponse(content, content_type=content_type)
    response['Content-Disposition'] = f'attachment; filename="{filename_base}.{export_type}"'
    return response
