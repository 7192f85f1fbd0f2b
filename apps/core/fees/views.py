from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.db.models import Q
from django.shortcuts import get_object_or_404, redirect, render
from django.views.decorators.http import require_POST

from apps.core.students.models import Student
from apps.core.users.audit import log_audit_event
from apps.core.users.decorators import role_required
from apps.core.utils.exports import export_filename, response_for_export

from .forms import FeeSettingForm, PaymentEditForm, PaymentForm
from .models import FeeSetting, Payment
from .services import (
    PAYMENT_EXPORT_HEADERS,
    delete_payment,
    load_fee_configuration,
    payment_export_rows,
    record_payment,
    remove_bus_stop,
    student_fee_status,
    update_fee_configuration,
    update_payment,
)

DESK_ROLES = ['admin', 'clerk']


@login_required
@role_required(DESK_ROLES)
def payment_collect(request):
    initial = {}
    selected_student = None
    student_id = request.GET.get('student') or request.POST.get('student')
    if str(student_id).isdigit():
        selected_student = Student.objects.filter(pk=student_id).first()
        initial['student'] = selected_student

    form = PaymentForm(request.POST or None, initial=initial)
    if request.method == 'POST' and form.is_valid():
        cleaned = form.cleaned_data
        try:
            payment = record_payment(
                student=cleaned['student'],
                added_by=request.user,
                development_fee=cleaned['development_fee'],
                bus_fee=cleaned['bus_fee'],
                special_fee=cleaned['special_fee'],
                special_fee_type=cleaned['special_fee_type'],
            )
        except ValidationError as exc:
            form.add_error(None, '; '.join(exc.messages))
        else:
            log_audit_event(
                request=request,
                action='fees.payment_collected',
                target=payment,
                details=f"Admission={payment.admission_number}, Total={payment.total_amount}",
            )
            messages.success(request, f"Payment {payment.receipt_number} recorded successfully.")
            return redirect('payment_receipt', pk=payment.pk)

    return render(request, 'fees/payment_collect.html', {
        'form': form,
        'selected_student': selected_student,
        'status': student_fee_status(selected_student) if selected_student else None,
    })


@login_required
@role_required(DESK_ROLES)
def payment_list(request):
    payments = Payment.objects.all()
    search = (request.GET.get('q') or '').strip()
    if search:
        payments = payments.filter(
            Q(student_name__icontains=search)
            | Q(admission_number__icontains=search)
        )

    export = request.GET.get('export')
    if export in {'csv', 'pdf'}:
        response = response_for_export(
            title='Payments',
            headers=PAYMENT_EXPORT_HEADERS,
            rows=payment_export_rows(payments),
            filename_base=export_filename('payments'),
            export_type=export,
        )
        if response:
            return response

    return render(request, 'fees/payment_list.html', {
        'payments': payments[:300],
        'search_query': search,
    })


@login_required
@role_required(DESK_ROLES)
def payment_receipt(request, pk):
    payment = get_object_or_404(Payment.objects.select_related('student'), pk=pk)
    return render(request, 'fees/payment_receipt.html', {'payment': payment})


@login_required
@role_required(DESK_ROLES)
def payment_update(request, pk):
    payment = get_object_or_404(Payment, pk=pk)
    form = PaymentEditForm(request.POST or None, instance=payment)
    if request.method == 'POST' and form.is_valid():
        try:
            update_payment(payment, **form.cleaned_data)
        except ValidationError as exc:
            form.add_error(None, '; '.join(exc.messages))
        else:
            log_audit_event(
                request=request,
                action='fees.payment_updated',
                target=payment,
                details=f"Receipt={payment.receipt_number}, Total={payment.total_amount}",
            )
            messages.success(request, 'Payment updated successfully.')
            return redirect('payment_list')

    return render(request, 'fees/payment_form.html', {'form': form, 'payment': payment})


@login_required
@role_required('admin')
@require_POST
def payment_delete(request, pk):
    payment = get_object_or_404(Payment, pk=pk)
    details = f"Receipt={payment.receipt_number}, Total={payment.total_amount}"

    delete_payment(payment)

    log_audit_event(
        request=request,
        action='fees.payment_deleted',
        details=details,
    )
    messages.success(request, 'Payment deleted successfully.')
    return redirect('payment_list')


@login_required
@role_required('admin')
def fee_settings(request):
    form = FeeSettingForm(request.POST or None)

    if request.method == 'POST' and form.is_valid():
        cleaned = form.cleaned_data
        values = {cleaned['config_key']: cleaned['config_value']}
        try:
            if cleaned['config_type'] == FeeSetting.TYPE_DEVELOPMENT_FEE:
                update_fee_configuration(development_fees=values)
            else:
                update_fee_configuration(bus_stops=values)
        except ValidationError as exc:
            form.add_error(None, '; '.join(exc.messages))
        else:
            log_audit_event(
                request=request,
                action='fees.setting_saved',
                details=f"Type={cleaned['config_type']}, Key={cleaned['config_key']}, Amount={cleaned['config_value']}",
            )
            messages.success(request, 'Fee setting saved.')
            return redirect('fee_settings')

    fee_config = load_fee_configuration()
    return render(request, 'fees/fee_settings.html', {
        'form': form,
        'development_fees': sorted(
            fee_config.development_fees.items(),
            key=lambda item: (int(item[0].split('-')[0]), item[0]) if item[0].split('-')[0].isdigit() else (99, item[0]),
        ),
        'bus_stops': sorted(fee_config.bus_stops.items()),
    })


@login_required
@role_required('admin')
@require_POST
def bus_stop_remove(request):
    stop_name = (request.POST.get('stop') or '').strip()
    if remove_bus_stop(stop_name):
        log_audit_event(
            request=request,
            action='fees.bus_stop_removed',
            details=f"Stop={stop_name}",
        )
        messages.success(request, f"Bus stop {stop_name} removed.")
    else:
        messages.error(request, f"Bus stop {stop_name or '-'} was not found.")
    return redirect('fee_settings')
