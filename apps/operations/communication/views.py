from django.contrib.auth.decorators import login_required
from django.shortcuts import render

from apps.core.users.decorators import role_required

from .models import NotificationLog


@login_required
@role_required(['admin', 'clerk'])
def notification_log(request):
    logs = NotificationLog.objects.select_related('payment')
    status = request.GET.get('status')
    if status in dict(NotificationLog.STATUS_CHOICES):
        logs = logs.filter(status=status)

    return render(request, 'communication/notification_log.html', {
        'logs': logs[:200],
        'selected_status': status or '',
        'status_choices': NotificationLog.STATUS_CHOICES,
    })
