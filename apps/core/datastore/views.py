import logging

from django.conf import settings
from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.http import HttpResponse
from django.shortcuts import redirect, render
from django.views.decorators.http import require_POST

from apps.core.users.audit import log_audit_event
from apps.core.users.decorators import role_required
from apps.core.utils.exports import export_filename
from apps.operations.reports.emails import send_fee_reports

from .forms import BackupRestoreForm, ClearDataForm, ReportEmailForm
from .services import (
    BACKUP_CONTENT_TYPE,
    clear_all_data,
    clear_payments,
    clear_students,
    export_backup,
    restore_backup,
)
from .stores import PartialClearError, get_fee_store

logger = logging.getLogger(__name__)

CLEAR_ACTIONS = {
    ClearDataForm.SCOPE_STUDENTS: clear_students,
    ClearDataForm.SCOPE_PAYMENTS: clear_payments,
    ClearDataForm.SCOPE_ALL: clear_all_data,
}


def _render_page(request, **forms):
    store = get_fee_store()
    context = {
        'store_name': store.name,
        'counts': store.load().counts(),
        'report_recipients': settings.FEEDESK_REPORT_RECIPIENTS,
        'restore_form': forms.get('restore_form') or BackupRestoreForm(),
        'clear_form': forms.get('clear_form') or ClearDataForm(),
        'report_form': forms.get('report_form') or ReportEmailForm(),
    }
    return render(request, 'datastore/data_management.html', context)


@login_required
@role_required('admin')
def data_management(request):
    return _render_page(request)


@login_required
@role_required('admin')
def backup_download(request):
    content = export_backup()
    log_audit_event(request=request, action='datastore.backup_downloaded')

    response = HttpResponse(content, content_type=BACKUP_CONTENT_TYPE)
    response['Content-Disposition'] = f'attachment; filename="{export_filename("feedesk_backup")}.json"'
    return response


@login_required
@role_required('admin')
@require_POST
def backup_restore(request):
    form = BackupRestoreForm(request.POST, request.FILES)
    if not form.is_valid():
        return _render_page(request, restore_form=form)

    try:
        counts = restore_backup(form.cleaned_data['backup_file'].read())
    except ValidationError as exc:
        form.add_error('backup_file', exc.messages)
        return _render_page(request, restore_form=form)

    log_audit_event(
        request=request,
        action='datastore.backup_restored',
        details=', '.join(f"{name}={count}" for name, count in counts.items()),
    )
    messages.success(request, f"Backup restored: {counts['students']} students, {counts['payments']} payments.")
    return redirect('data_management')


@login_required
@role_required('admin')
@require_POST
def clear_data(request):
    form = ClearDataForm(request.POST)
    if not form.is_valid():
        return _render_page(request, clear_form=form)

    scope = form.cleaned_data['scope']
    store = get_fee_store()
    try:
        counts = CLEAR_ACTIONS[scope](store)
    except PartialClearError as exc:
        log_audit_event(
            request=request,
            action='datastore.clear_failed',
            details=f"Store={store.name}, Scope={scope}, Cleared={','.join(exc.cleared)}, Failed={exc.failed_table}",
        )
        messages.error(request, f"{exc} Tables cleared before the failure stay empty.")
        return redirect('data_management')

    log_audit_event(
        request=request,
        action='datastore.data_cleared',
        details=f"Store={store.name}, Scope={scope}, " + ', '.join(f"{name}={count}" for name, count in counts.items()),
    )
    messages.success(request, f"Cleared {', '.join(counts)} from the {store.name} store.")
    return redirect('data_management')


@login_required
@role_required('admin')
@require_POST
def send_reports_now(request):
    form = ReportEmailForm(request.POST)
    if not form.is_valid():
        return _render_page(request, report_form=form)

    try:
        message = send_fee_reports(form.cleaned_data['recipients'], since=form.cleaned_data['since'])
    except ValidationError as exc:
        form.add_error(None, exc.messages)
        return _render_page(request, report_form=form)
    except OSError:
        logger.exception('Sending fee reports failed')
        messages.error(request, 'The report email could not be sent. Check the email settings and try again.')
        return redirect('data_management')

    log_audit_event(
        request=request,
        action='datastore.reports_sent',
        details=f"To={', '.join(message.to)}",
    )
    messages.success(request, f"Reports sent to {', '.join(message.to)}.")
    return redirect('data_management')
