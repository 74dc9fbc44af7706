from io import BytesIO

from PIL import Image, ImageDraw

from .ledger import installment_summary
from .models import EnrolledClient, Installment

PAGE_WIDTH = 1240
PAGE_HEIGHT = 1754
MARGIN = 60
ROW_HEIGHT = 34


def image_to_pdf_bytes(images):
    if not images:
        return b''
    rgb_images = [img.convert('RGB') for img in images]
    output = BytesIO()
    rgb_images[0].save(output, format='PDF', save_all=True, append_images=rgb_images[1:])
    return output.getvalue()


def _new_page(client, page_number):
    page = Image.new('RGB', (PAGE_WIDTH, PAGE_HEIGHT), color='white')
    draw = ImageDraw.Draw(page)
    draw.rectangle((30, 30, PAGE_WIDTH - 30, PAGE_HEIGHT - 30), outline='black', width=3)
    draw.text((MARGIN, 60), f"Installment Statement - Enrollment #{client.pk}", fill='black')
    draw.text((MARGIN, 100), f"Client: {client.lead.full_name}", fill='black')
    draw.text((PAGE_WIDTH - 260, 60), f"Page {page_number}", fill='black')
    return page, draw, 160


def build_installment_statement_pages(client: EnrolledClient):
    pages = []
    page, draw, y = _new_page(client, 1)
    pages.append(page)

    for charge_type, label in Installment.CHARGE_TYPE_CHOICES:
        rows = list(Installment.objects.for_charge(client, charge_type).order_by('installment_number', 'id'))
        summary = installment_summary(enrolled_client=client, charge_type=charge_type)

        if y + ROW_HEIGHT * (len(rows) + 5) > PAGE_HEIGHT - MARGIN and y > 200:
            page, draw, y = _new_page(client, len(pages) + 1)
            pages.append(page)

        y += 20
        draw.text((MARGIN, y), f"{label}: {summary['total_charge']}", fill='black')
        y += ROW_HEIGHT
        draw.text((MARGIN, y), '#', fill='black')
        draw.text((140, y), 'Due Date', fill='black')
        draw.text((360, y), 'Amount', fill='black')
        draw.text((560, y), 'Status', fill='black')
        draw.text((740, y), 'Remark', fill='black')
        draw.line((MARGIN, y + 24, PAGE_WIDTH - MARGIN, y + 24), fill='black')
        y += ROW_HEIGHT + 6

        for row in rows:
            if y > PAGE_HEIGHT - MARGIN - ROW_HEIGHT:
                page, draw, y = _new_page(client, len(pages) + 1)
                pages.append(page)
            status = f"Paid {row.paid_date}" if row.paid else 'Due'
            draw.text((MARGIN, y), str(row.installment_number), fill='black')
            draw.text((140, y), str(row.due_date), fill='black')
            draw.text((360, y), str(row.amount), fill='black')
            draw.text((560, y), status, fill='black')
            draw.text((740, y), (row.remark or '-')[:48], fill='black')
            y += ROW_HEIGHT

        draw.text((MARGIN, y), f"Scheduled: {summary['total_installments']}", fill='black')
        draw.text((420, y), f"Remaining: {summary['remaining_amount']}", fill='black')
        y += ROW_HEIGHT

    return pages


def generate_installment_statement_pdf(client: EnrolledClient) -> bytes:
    return image_to_pdf_bytes(build_installment_statement_pages(client))
