from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.core.exceptions import PermissionDenied, ValidationError
from django.http import Http404
from django.shortcuts import get_object_or_404, redirect, render
from django.views.decorators.http import require_POST

from apps.core.fees.models import Payment
from apps.core.users.audit import log_audit_event
from apps.core.users.decorators import role_required
from apps.core.utils.classes import get_section
from apps.core.utils.exports import export_filename, response_for_export

from .forms import CollectionEntryForm, CollectionFilterForm
from .models import CollectionEntry
from .services import (
    can_manage_entry,
    can_record_clerk_handover,
    can_record_for_section,
    delete_collection_entry,
    readable_sections,
    record_collection_entry,
    section_collection_summary,
    section_to_clerk_ledger,
    teacher_to_section_ledger,
    update_collection_entry,
)

LEDGER_ROLES = ['admin', 'clerk', 'sarvodaya']
KIND_TITLES = dict(CollectionEntry.KIND_CHOICES)


def _kind_or_404(kind):
    if kind not in KIND_TITLES:
        raise Http404('Unknown collection ledger.')
    return kind


def _can_record(user, kind):
    if kind == CollectionEntry.KIND_SECTION_TO_CLERK:
        return can_record_clerk_handover(user)
    return can_record_for_section(user, user.section)


@login_required
@role_required(LEDGER_ROLES)
def collection_overview(request):
    sections = readable_sections(request.user)
    entries = list(CollectionEntry.objects.filter(section__in=sections))
    payments = list(Payment.objects.all())

    section_rows = []
    for code in sections:
        section_rows.append({
            'section': get_section(code),
            'teacher_rows': teacher_to_section_ledger(payments, entries, code),
            'collected': section_collection_summary(payments, entries, code),
        })
    clerk_rows = section_to_clerk_ledger(entries, sections)

    export = request.GET.get('export')
    if export in {'csv', 'pdf'}:
        rows = []
        for section_row in section_rows:
            for row in section_row['teacher_rows']:
                rows.append([
                    section_row['section']['name'],
                    row['key'],
                    row['expected'],
                    row['recorded'],
                    row['difference'],
                    row['status'],
                ])
        response = response_for_export(
            title='Class Teacher Collection Reconciliation',
            headers=['Section', 'Class', 'Collected', 'Handed Over', 'Difference', 'Status'],
            rows=rows,
            filename_base=export_filename('collection_reconciliation'),
            export_type=export,
        )
        if response:
            return response

    return render(request, 'collections/overview.html', {
        'section_rows': section_rows,
        'clerk_rows': clerk_rows,
        'kinds': CollectionEntry.KIND_CHOICES,
    })


@login_required
@role_required(LEDGER_ROLES)
def collection_entry_list(request, kind):
    kind = _kind_or_404(kind)
    entries = CollectionEntry.objects.filter(
        kind=kind,
        section__in=readable_sections(request.user),
    ).select_related('recorded_by')

    filter_form = CollectionFilterForm(request.GET or None)
    if filter_form.is_valid():
        cleaned = filter_form.cleaned_data
        if cleaned['date_from']:
            entries = entries.filter(collection_date__gte=cleaned['date_from'])
        if cleaned['date_to']:
            entries = entries.filter(collection_date__lte=cleaned['date_to'])
        if cleaned['source']:
            entries = entries.filter(source=cleaned['source'].strip())

    entry_rows = [
        {'entry': entry, 'can_manage': can_manage_entry(request.user, entry)}
        for entry in entries
    ]

    return render(request, 'collections/entry_list.html', {
        'kind': kind,
        'kind_title': KIND_TITLES[kind],
        'entry_rows': entry_rows,
        'filter_form': filter_form,
        'can_record': _can_record(request.user, kind),
        'total_amount': sum((row['entry'].amount for row in entry_rows), 0),
    })


@login_required
@role_required(LEDGER_ROLES)
def collection_entry_create(request, kind):
    kind = _kind_or_404(kind)
    if not _can_record(request.user, kind):
        raise PermissionDenied('You cannot record this collection entry.')

    form = CollectionEntryForm(request.POST or None, kind=kind, section=request.user.section)
    if request.method == 'POST' and form.is_valid():
        cleaned = form.cleaned_data
        try:
            entry = record_collection_entry(
                user=request.user,
                kind=kind,
                source=cleaned['source'],
                target=cleaned.get('target', ''),
                amount=cleaned['amount'],
                fee_category=cleaned['fee_category'],
                collection_date=cleaned['collection_date'],
                remarks=cleaned['remarks'],
            )
        except ValidationError as exc:
            form.add_error(None, '; '.join(exc.messages))
        else:
            log_audit_event(
                request=request,
                action='collections.entry_recorded',
                target=entry,
                details=f"Kind={entry.kind}, Source={entry.source}, Amount={entry.amount}",
            )
            messages.success(request, 'Collection entry recorded successfully.')
            return redirect('collection_entry_list', kind=kind)

    return render(request, 'collections/entry_form.html', {
        'form': form,
        'kind': kind,
        'kind_title': KIND_TITLES[kind],
    })


@login_required
@role_required(LEDGER_ROLES)
def collection_entry_update(request, pk):
    entry = get_object_or_404(CollectionEntry, pk=pk)
    if not can_manage_entry(request.user, entry):
        raise PermissionDenied('You cannot change this collection entry.')

    initial = {
        'source': entry.source,
        'target': entry.target,
        'fee_category': entry.fee_category,
        'amount': entry.amount,
        'collection_date': entry.collection_date,
        'remarks': entry.remarks,
    }
    form = CollectionEntryForm(
        request.POST or None,
        initial=initial,
        kind=entry.kind,
        section=request.user.section,
    )
    if request.method == 'POST' and form.is_valid():
        cleaned = dict(form.cleaned_data)
        if not cleaned.get('collection_date'):
            cleaned.pop('collection_date', None)
        try:
            update_collection_entry(entry, user=request.user, **cleaned)
        except ValidationError as exc:
            form.add_error(None, '; '.join(exc.messages))
        else:
            log_audit_event(
                request=request,
                action='collections.entry_updated',
                target=entry,
                details=f"Kind={entry.kind}, Source={entry.source}, Amount={entry.amount}",
            )
            messages.success(request, 'Collection entry updated successfully.')
            return redirect('collection_entry_list', kind=entry.kind)

    return render(request, 'collections/entry_form.html', {
        'form': form,
        'entry': entry,
        'kind': entry.kind,
        'kind_title': KIND_TITLES[entry.kind],
    })


@login_required
@role_required(LEDGER_ROLES)
@require_POST
def collection_entry_delete(request, pk):
    entry = get_object_or_404(CollectionEntry, pk=pk)
    kind = entry.kind
    details = f"Kind={entry.kind}, Source={entry.source}, Amount={entry.amount}"

    delete_collection_entry(entry, user=request.user)

    log_audit_event(
        request=request,
        action='collections.entry_deleted',
        details=details,
    )
    messages.success(request, 'Collection entry deleted successfully.')
    return redirect('collection_entry_list', kind=kind)
