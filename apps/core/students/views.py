from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.shortcuts import get_object_or_404, redirect, render
from django.views.decorators.http import require_POST

from apps.core.fees.services import load_fee_configuration, student_fee_status
from apps.core.users.audit import log_audit_event
from apps.core.users.decorators import role_required
from apps.core.utils.classes import CLASS_CHOICES, DIVISIONS
from apps.core.utils.exports import export_filename, response_for_export

from .forms import StudentForm, StudentImportForm
from .models import Student
from .services import (
    STUDENT_EXPORT_HEADERS,
    DuplicateAdmissionNumber,
    create_student,
    delete_student,
    filter_students,
    import_students,
    parse_student_csv,
    student_export_rows,
    update_student,
)

STUDENT_ROLES = ['admin', 'clerk']


def _filters_from_request(request):
    return {
        'search': (request.GET.get('q') or '').strip(),
        'school_class': request.GET.get('class') or '',
        'division': request.GET.get('division') or '',
        'bus_stop': request.GET.get('bus_stop') or '',
    }


def _apply_service_errors(form, exc):
    if isinstance(exc, DuplicateAdmissionNumber):
        form.add_error('admission_number', exc.messages[0])
    elif hasattr(exc, 'error_dict'):
        for field_name, errors in exc.message_dict.items():
            form.add_error(field_name if field_name in form.fields else None, errors)
    else:
        form.add_error(None, '; '.join(exc.messages))


@login_required
@role_required(STUDENT_ROLES)
def student_list(request):
    filters = _filters_from_request(request)
    students = filter_students(Student.objects.all(), **filters)

    export = request.GET.get('export')
    if export in {'csv', 'pdf'}:
        response = response_for_export(
            title='Students',
            headers=STUDENT_EXPORT_HEADERS,
            rows=student_export_rows(students),
            filename_base=export_filename('students'),
            export_type=export,
        )
        if response:
            return response

    return render(request, 'students/student_list.html', {
        'students': students,
        'filters': filters,
        'class_choices': CLASS_CHOICES,
        'divisions': DIVISIONS,
        'bus_stops': sorted(load_fee_configuration().bus_stops),
    })


@login_required
@role_required(STUDENT_ROLES)
def student_create(request):
    form = StudentForm(request.POST or None)
    if request.method == 'POST' and form.is_valid():
        try:
            student = create_student(**form.cleaned_data)
        except ValidationError as exc:
            _apply_service_errors(form, exc)
        else:
            log_audit_event(
                request=request,
                action='students.student_created',
                target=student,
                details=f"Admission={student.admission_number}, Class={student.class_key}",
            )
            messages.success(request, 'Student added successfully.')
            return redirect('student_list')

    return render(request, 'students/student_form.html', {'form': form})


@login_required
@role_required(STUDENT_ROLES)
def student_update(request, pk):
    student = get_object_or_404(Student, pk=pk)
    form = StudentForm(request.POST or None, instance=student)
    if request.method == 'POST' and form.is_valid():
        try:
            update_student(student, **form.cleaned_data)
        except ValidationError as exc:
            _apply_service_errors(form, exc)
        else:
            log_audit_event(
                request=request,
                action='students.student_updated',
                target=student,
                details=f"Admission={student.admission_number}",
            )
            messages.success(request, 'Student updated successfully.')
            return redirect('student_list')

    return render(request, 'students/student_form.html', {'form': form, 'student': student})


@login_required
@role_required(STUDENT_ROLES)
@require_POST
def student_delete(request, pk):
    student = get_object_or_404(Student, pk=pk)
    details = f"Admission={student.admission_number}, Name={student.name}"

    delete_student(student)

    log_audit_event(
        request=request,
        action='students.student_deleted',
        details=details,
    )
    messages.success(request, 'Student deleted. Their payments are kept.')
    return redirect('student_list')


@login_required
@role_required(STUDENT_ROLES)
def student_detail(request, pk):
    student = get_object_or_404(Student, pk=pk)
    return render(request, 'students/student_detail.html', {
        'student': student,
        'status': student_fee_status(student),
    })


@login_required
@role_required(STUDENT_ROLES)
def student_import(request):
    form = StudentImportForm(request.POST or None, request.FILES or None)
    result = None

    if request.method == 'POST' and form.is_valid():
        rows = parse_student_csv(form.cleaned_data['file'])
        result = import_students(rows)
        log_audit_event(
            request=request,
            action='students.students_imported',
            details=f"Added={result['success_count']}, Skipped={result['skip_count']}, Failed={result['failed_count']}, Errors={len(result['errors'])}",
        )
        if result['success_count']:
            messages.success(request, f"Imported {result['success_count']} students.")
        if result['skip_count']:
            messages.warning(request, f"Skipped {result['skip_count']} rows.")
        if result['failed_count']:
            messages.error(request, f"Could not add {result['failed_count']} rows.")

    return render(request, 'students/student_import.html', {
        'form': form,
        'result': result,
        'headers': STUDENT_EXPORT_HEADERS[:-1],
    })
