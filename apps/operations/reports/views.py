from django.contrib.auth.decorators import login_required
from django.db.models import Q
from django.http import Http404
from django.shortcuts import render

from apps.core.fees.models import Payment
from apps.core.fees.services import PAYMENT_EXPORT_HEADERS, load_fee_configuration, payment_export_rows
from apps.core.students.models import Student
from apps.core.users.decorators import role_required
from apps.core.utils.exports import export_filename, response_for_export

from .forms import ClassFilterForm, ClassMonthlyForm, ReceiptFilterForm, TeacherPeriodForm
from .services import (
    bus_stop_summary,
    class_division_summary,
    class_monthly_matrix,
    class_report,
    filter_payments,
    month_detail,
    monthly_summary,
    section_summary,
    unpaid_students,
)

REPORT_ROLES = ['admin', 'clerk']


def _export_response(request, *, title, headers, rows, filename_base):
    export = request.GET.get('export')
    if export not in {'csv', 'pdf'}:
        return None
    return response_for_export(
        title=title,
        headers=headers,
        rows=rows,
        filename_base=export_filename(filename_base),
        export_type=export,
    )


@login_required
@role_required(REPORT_ROLES)
def class_division_report(request):
    rows = class_division_summary(Student.objects.all(), Payment.objects.all(), load_fee_configuration())

    response = _export_response(
        request,
        title='Class-wise Balance Report',
        headers=[
            'Class', 'Students', 'Development Balance', 'Bus Balance', 'Total Balance',
            'Payments', 'Development Collected', 'Bus Collected', 'Special Collected', 'Total Collected',
        ],
        rows=[
            [
                row['key'], row['total_students'], row['development_balance'], row['bus_balance'],
                row['total_balance'], row['payment_count'], row['development_collected'],
                row['bus_collected'], row['special_collected'], row['total_collected'],
            ]
            for row in rows
        ],
        filename_base='class_wise_report',
    )
    if response:
        return response

    return render(request, 'reports/class_division.html', {'rows': rows})


@login_required
@role_required(REPORT_ROLES)
def bus_stop_report(request):
    rows = bus_stop_summary(Student.objects.all(), Payment.objects.all(), load_fee_configuration())

    response = _export_response(
        request,
        title='Bus Stop Report',
        headers=[
            'Bus Stop', 'Fee', 'Students', 'Bus Numbers', 'Trips', 'Bus Balance',
            'Total Balance', 'Bus Collected', 'Total Collected',
        ],
        rows=[
            [
                row['bus_stop'], row['configured_fee'], row['total_students'],
                ' '.join(row['bus_numbers']), ' '.join(row['trip_numbers']), row['bus_balance'],
                row['total_balance'], row['bus_collected'], row['total_collected'],
            ]
            for row in rows
        ],
        filename_base='bus_stop_report',
    )
    if response:
        return response

    return render(request, 'reports/bus_stop.html', {'rows': rows})


@login_required
@role_required(REPORT_ROLES)
def monthly_report(request):
    rows = monthly_summary(Payment.objects.all())

    response = _export_response(
        request,
        title='Monthly Collection Report',
        headers=['Month', 'Payments', 'Development Fee', 'Bus Fee', 'Special Fee', 'Total'],
        rows=[
            [row['label'], row['payment_count'], row['development_fee'], row['bus_fee'], row['special_fee'], row['total']]
            for row in rows
        ],
        filename_base='monthly_report',
    )
    if response:
        return response

    return render(request, 'reports/monthly.html', {'rows': rows})


@login_required
@role_required(REPORT_ROLES)
def month_detail_report(request, year, month):
    if not 1 <= month <= 12:
        raise Http404('Unknown month.')
    detail = month_detail(Payment.objects.all(), year, month)

    response = _export_response(
        request,
        title=f"Collections - {detail['label']}",
        headers=PAYMENT_EXPORT_HEADERS,
        rows=payment_export_rows(detail['payments']),
        filename_base=f"collections_{detail['key']}",
    )
    if response:
        return response

    return render(request, 'reports/month_detail.html', {'detail': detail})


@login_required
@role_required(REPORT_ROLES)
def section_report(request):
    rows = section_summary(Student.objects.all(), Payment.objects.all())

    response = _export_response(
        request,
        title='Section-wise Collection Report',
        headers=['Section', 'Students', 'Payments', 'Development Fee', 'Bus Fee', 'Special Fee', 'Total', 'Average'],
        rows=[
            [
                row['name'], row['total_students'], row['payment_count'], row['development_fee'],
                row['bus_fee'], row['special_fee'], row['total'], row['average_per_student'],
            ]
            for row in rows
        ],
        filename_base='section_report',
    )
    if response:
        return response

    return render(request, 'reports/sections.html', {'rows': rows})


@login_required
@role_required(REPORT_ROLES)
def unpaid_report(request):
    form = ClassFilterForm(request.GET or None)
    students = Student.objects.all()
    if form.is_valid():
        if form.cleaned_data['school_class']:
            students = students.filter(school_class=form.cleaned_data['school_class'])
        if form.cleaned_data['division']:
            students = students.filter(division=form.cleaned_data['division'])

    report = unpaid_students(students, Payment.objects.filter(student__in=students), load_fee_configuration())

    response = _export_response(
        request,
        title='Unpaid Students',
        headers=['Admission No', 'Name', 'Class', 'Mobile', 'Development Balance', 'Bus Balance', 'Total Balance'],
        rows=[
            [
                row['student'].admission_number, row['student'].name, row['class_key'], row['student'].mobile,
                row['development_balance'], row['bus_balance'], row['total_balance'],
            ]
            for row in report['students']
        ],
        filename_base='unpaid_students',
    )
    if response:
        return response

    return render(request, 'reports/unpaid.html', {'form': form, 'report': report})


@login_required
@role_required(REPORT_ROLES)
def receipt_report(request):
    form = ReceiptFilterForm(request.GET or None)
    filters = {}
    if form.is_valid():
        filters = {key: value for key, value in form.cleaned_data.items() if value}

    payments = filter_payments(Payment.objects.all(), **filters)

    response = _export_response(
        request,
        title='Receipt-wise Report',
        headers=PAYMENT_EXPORT_HEADERS,
        rows=payment_export_rows(payments),
        filename_base='receipt_wise_report',
    )
    if response:
        return response

    return render(request, 'reports/receipts.html', {
        'form': form,
        'payments': payments,
        'total': sum((payment.total_amount for payment in payments), 0),
    })


@login_required
@role_required(REPORT_ROLES)
def class_monthly_report(request):
    form = ClassMonthlyForm(request.GET or None)
    matrix = None

    if form.is_valid():
        cleaned = form.cleaned_data
        students = Student.objects.filter(school_class=cleaned['school_class'], division=cleaned['division'])
        matrix = class_monthly_matrix(
            students,
            Payment.objects.filter(student__in=students),
            category=cleaned['category'],
        )

        response = _export_response(
            request,
            title=f"Class {cleaned['school_class']}-{cleaned['division']} Monthly Collection",
            headers=['Admission No', 'Name'] + matrix['month_labels'] + ['Total'],
            rows=[
                [row['student'].admission_number, row['student'].name] + row['amounts'] + [row['total']]
                for row in matrix['rows']
            ],
            filename_base='class_monthly_report',
        )
        if response:
            return response

    return render(request, 'reports/class_monthly.html', {'form': form, 'matrix': matrix})


@login_required
@role_required('teacher')
def teacher_class_report(request):
    teacher = request.user
    form = TeacherPeriodForm(request.GET or None)
    students = Student.objects.filter(school_class=teacher.school_class, division=teacher.division)

    payments = Payment.objects.filter(
        Q(student__in=students) | Q(school_class=teacher.school_class, division=teacher.division)
    )
    report = class_report(
        students,
        payments,
        load_fee_configuration(),
        school_class=teacher.school_class,
        division=teacher.division,
        **form.payment_filters(),
    )

    response = _export_response(
        request,
        title=f"Class {report['key']} Payments",
        headers=PAYMENT_EXPORT_HEADERS,
        rows=payment_export_rows(report['payments']),
        filename_base=f"class_{report['key']}_payments",
    )
    if response:
        return response

    return render(request, 'reports/teacher_class.html', {'form': form, 'report': report})
