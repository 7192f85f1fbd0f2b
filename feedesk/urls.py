from django.contrib import admin
from django.urls import path, include
from django.contrib.auth import views as auth_views

login_view = auth_views.LoginView.as_view(
    template_name='registration/login.html',
    redirect_authenticated_user=True,
)

urlpatterns = [
    path('admin/', admin.site.urls),
    path('', login_view, name='home'),
    path('login/', login_view, name='login'),
    path('logout/', auth_views.LogoutView.as_view(), name='logout'),

    path('', include('apps.core.users.urls')),
    path('students/', include('apps.core.students.urls')),
    path('fees/', include('apps.core.fees.urls')),
    path('data/', include('apps.core.datastore.urls')),
    path('reports/', include('apps.operations.reports.urls')),
    path('collections/', include('apps.operations.collections.urls')),
    path('notifications/', include('apps.operations.communication.urls')),
]
