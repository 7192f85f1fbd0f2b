from django.contrib import messages
from django.contrib.auth import get_user_model
from django.contrib.auth.decorators import login_required
from django.shortcuts import get_object_or_404, redirect, render
from django.utils import timezone

from apps.core.fees.calculations import ZERO, aggregate_payments
from apps.core.fees.models import Payment
from apps.core.fees.services import load_fee_configuration
from apps.core.students.models import Student
from apps.core.users.audit import log_audit_event
from apps.core.users.decorators import role_required
from apps.operations.reports.services import class_division_summary, filter_payments, monthly_summary

from .forms import UserForm
from .models import AuditLog


@login_required
def role_redirect(request):

    role = request.user.role

    if role in {'admin', 'clerk'}:
        return redirect('office_dashboard')

    elif role == 'teacher':
        return redirect('teacher_class_report')

    elif role == 'sarvodaya':
        return redirect('collection_overview')

    else:
        return redirect('/login/')


@login_required
@role_required(['admin', 'clerk'])
def office_dashboard(request):
    students = list(Student.objects.all())
    payments = list(Payment.objects.all())
    class_rows = class_division_summary(students, payments, load_fee_configuration())
    today_payments = filter_payments(payments, on_date=timezone.localdate())

    return render(request, 'users/office_dashboard.html', {
        'total_students': len(students),
        'collected': aggregate_payments(payments),
        'today': aggregate_payments(today_payments),
        'outstanding': sum((row['total_balance'] for row in class_rows), ZERO),
        'recent_payments': payments[:10],
        'months': monthly_summary(payments)[:6],
    })


@login_required
@role_required('admin')
def user_list(request):
    users = get_user_model().objects.order_by('role', 'username')
    return render(request, 'users/user_list.html', {'users': users})


@login_required
@role_required('admin')
def user_create(request):
    form = UserForm(request.POST or None)
    if request.method == 'POST' and form.is_valid():
        user = form.save()
        log_audit_event(
            request=request,
            action='users.user_created',
            target=user,
            details=f"Username={user.username}, Role={user.role}",
        )
        messages.success(request, f"User {user.username} created.")
        return redirect('user_list')

    return render(request, 'users/user_form.html', {'form': form})


@login_required
@role_required('admin')
def user_update(request, pk):
    user = get_object_or_404(get_user_model(), pk=pk)
    form = UserForm(request.POST or None, instance=user)
    if request.method == 'POST' and form.is_valid():
        user = form.save()
        log_audit_event(
            request=request,
            action='users.user_updated',
            target=user,
            details=f"Username={user.username}, Role={user.role}, Active={user.is_active}",
        )
        messages.success(request, f"User {user.username} updated.")
        return redirect('user_list')

    return render(request, 'users/user_form.html', {'form': form, 'managed_user': user})


@login_required
@role_required('admin')
def audit_log_list(request):
    logs = AuditLog.objects.select_related('user')
    action = (request.GET.get('action') or '').strip()
    if action:
        logs = logs.filter(action__startswith=action)
    return render(request, 'users/audit_log.html', {'logs': logs[:300], 'action': action})
