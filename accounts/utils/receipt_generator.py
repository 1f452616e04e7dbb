"""
Fee Receipt PDF Generator
Renders one collection (all payments sharing a receipt number) as an A5 receipt
"""
from io import BytesIO
from decimal import Decimal

from django.conf import settings
from django.utils import timezone
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A5
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle


ONES = ['', 'One', 'Two', 'Three', 'Four', 'Five', 'Six', 'Seven', 'Eight', 'Nine',
        'Ten', 'Eleven', 'Twelve', 'Thirteen', 'Fourteen', 'Fifteen', 'Sixteen',
        'Seventeen', 'Eighteen', 'Nineteen']
TENS = ['', '', 'Twenty', 'Thirty', 'Forty', 'Fifty', 'Sixty', 'Seventy', 'Eighty', 'Ninety']


def _below_thousand(n):
    words = []
    if n >= 100:
        words.append(f"{ONES[n // 100]} Hundred")
        n %= 100
    if n >= 20:
        words.append(TENS[n // 10])
        n %= 10
    if n:
        words.append(ONES[n])
    return ' '.join(words)


def _indian_words(n):
    parts = []
    crore, n = divmod(n, 10 ** 7)
    lakh, n = divmod(n, 10 ** 5)
    thousand, n = divmod(n, 1000)
    if crore:
        parts.append(f"{_indian_words(crore)} Crore")
    if lakh:
        parts.append(f"{_below_thousand(lakh)} Lakh")
    if thousand:
        parts.append(f"{_below_thousand(thousand)} Thousand")
    if n:
        parts.append(_below_thousand(n))
    return ' '.join(parts)


def number_to_words(amount):
    """
    Whole rupees in words using the Indian system, e.g.
    125000 -> "One Lakh Twenty Five Thousand Only"
    """
    n = int(amount)
    if n <= 0:
        return 'Zero Only'
    return f"{_indian_words(n)} Only"


def format_currency(amount):
    """Rs. 1,25,000.00 style grouping"""
    amount = Decimal(amount).quantize(Decimal('0.01'))
    sign = '-' if amount < 0 else ''
    whole, fraction = f"{abs(amount):.2f}".split('.')
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ','.join(groups + [tail])
    return f"{sign}{settings.CURRENCY_SYMBOL} {whole}.{fraction}"


def build_receipt_data(payments):
    """
    Collect everything printed on a receipt from the payments of one collection.

    Args:
        payments: FeePayment queryset or list sharing one receipt number

    Returns:
        dict ready for generate_receipt_pdf
    """
    payments = list(payments)
    first = payments[0]
    student = first.student
    paid_on = timezone.localtime(first.payment_date)

    breakdown = []
    total_discount = Decimal('0.00')
    amount_paid = Decimal('0.00')
    for payment in payments:
        record = payment.fee_record
        breakdown.append({
            'name': record.fee_type.name,
            'ratio': record.payment_ratio(),
            'discount': payment.discount,
            'amount_paid': payment.amount_paid,
        })
        total_discount += payment.discount
        amount_paid += payment.amount_paid

    return {
        'receipt_number': first.receipt_number,
        'date': paid_on.strftime('%d/%m/%Y'),
        'time': paid_on.strftime('%I:%M %p'),
        'payment_method': first.get_payment_method_display(),
        'student': student.name,
        'guardian': student.guardian_name or '-',
        'admission_number': student.admission_no,
        'class_name': student.school_class.class_name if student.school_class_id else '-',
        'fee_breakdown': breakdown,
        'total_amount': amount_paid + total_discount,
        'discount': total_discount,
        'amount_paid': amount_paid,
    }


def generate_receipt_pdf(receipt_data):
    """
    Render a fee receipt.

    Returns:
        BytesIO: PDF file positioned at the start
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=A5,
        leftMargin=12 * mm, rightMargin=12 * mm, topMargin=10 * mm, bottomMargin=10 * mm,
        title=f"Fee Receipt {receipt_data['receipt_number']}",
    )
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle('SchoolTitle', parent=styles['Title'], fontSize=16, spaceAfter=2)
    centered = ParagraphStyle('Centered', parent=styles['Normal'], alignment=TA_CENTER, fontSize=8, leading=10)
    heading = ParagraphStyle('Heading', parent=styles['Heading4'], spaceBefore=6, spaceAfter=3)
    right = ParagraphStyle('Right', parent=styles['Normal'], alignment=TA_RIGHT, fontSize=8)
    small = ParagraphStyle('Small', parent=styles['Normal'], fontSize=8, leading=10)

    elements = [
        Paragraph(settings.SCHOOL_NAME, title_style),
        Paragraph(settings.SCHOOL_ADDRESS, centered),
        Paragraph(f"Contact: {settings.SCHOOL_CONTACT} | Email: {settings.SCHOOL_EMAIL}", centered),
        Spacer(1, 4 * mm),
        Paragraph("FEE PAYMENT RECEIPT", ParagraphStyle('Caption', parent=heading, alignment=TA_CENTER)),
    ]

    details = [
        ['Receipt No:', receipt_data['receipt_number'], 'Date:', receipt_data['date']],
        ['Payment Method:', receipt_data['payment_method'], 'Time:', receipt_data['time']],
        ['Student:', receipt_data['student'], 'Admission No:', receipt_data['admission_number']],
        ['Guardian:', receipt_data['guardian'], 'Class:', receipt_data['class_name']],
    ]
    details_table = Table(details, colWidths=[26 * mm, 40 * mm, 24 * mm, 34 * mm])
    details_table.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTNAME', (2, 0), (2, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 8),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 3),
    ]))
    elements.extend([details_table, Paragraph("Fee Breakdown", heading)])

    rows = [['Fee Component', 'Paid', 'Discount', 'Amount Paid']]
    for item in receipt_data['fee_breakdown']:
        rows.append([
            item['name'],
            item['ratio'],
            format_currency(item['discount']) if item['discount'] else '-',
            format_currency(item['amount_paid']),
        ])
    breakdown_table = Table(rows, colWidths=[48 * mm, 18 * mm, 28 * mm, 30 * mm], repeatRows=1)
    breakdown_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#1F2937')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 8),
        ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
        ('GRID', (0, 0), (-1, -1), 0.4, colors.HexColor('#D1D5DB')),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#F9FAFB')]),
    ]))
    elements.extend([breakdown_table, Spacer(1, 3 * mm)])

    totals = [['Total Due (this transaction):', format_currency(receipt_data['total_amount'])]]
    if receipt_data['discount'] > 0:
        totals.append(['Total Discount:', f"- {format_currency(receipt_data['discount'])}"])
    totals.append(['Amount Paid:', format_currency(receipt_data['amount_paid'])])
    totals_table = Table(totals, colWidths=[94 * mm, 30 * mm])
    totals_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (-1, -1), 'RIGHT'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
        ('LINEABOVE', (0, -1), (-1, -1), 0.6, colors.black),
    ]))
    elements.extend([
        totals_table,
        Spacer(1, 3 * mm),
        Paragraph(f"<b>In Words:</b> Rupees {number_to_words(receipt_data['amount_paid'])}", small),
        Spacer(1, 8 * mm),
        Paragraph("This is a digitally generated receipt and does not require a signature.", centered),
        Paragraph(f"Generated on {timezone.localtime().strftime('%d/%m/%Y %I:%M %p')}", right),
    ])

    doc.build(elements)
    buffer.seek(0)
    return buffer
