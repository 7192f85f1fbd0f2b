from django.contrib.auth.models import AbstractUser, UserManager as DjangoUserManager
from django.db import models

from apps.core.utils.classes import CLASS_CHOICES, DIVISION_CHOICES, SECTION_CHOICES, get_section


class UserManager(DjangoUserManager):
    def create_superuser(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault('role', 'admin')
        return super().create_superuser(username, email=email, password=password, **extra_fields)


class User(AbstractUser):
    ROLE_ADMIN = 'admin'
    ROLE_CLERK = 'clerk'
    ROLE_TEACHER = 'teacher'
    ROLE_SARVODAYA = 'sarvodaya'

    ROLE_CHOICES = (
        (ROLE_ADMIN, 'Admin'),
        (ROLE_CLERK, 'Clerk'),
        (ROLE_TEACHER, 'Class Teacher'),
        (ROLE_SARVODAYA, 'Sarvodaya / Section Head'),
    )

    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_TEACHER)
    school_class = models.CharField(max_length=2, choices=CLASS_CHOICES, blank=True)
    division = models.CharField(max_length=1, choices=DIVISION_CHOICES, blank=True)
    section = models.CharField(
        max_length=3,
        choices=SECTION_CHOICES,
        blank=True,
        help_text='Leave empty for a sarvodaya user with access to every section.',
    )

    objects = UserManager()

    class Meta:
        indexes = [
            models.Index(fields=['role'], name='user_role_idx'),
            models.Index(fields=['school_class', 'division'], name='user_class_division_idx'),
        ]

    def save(self, *args, **kwargs):
        if self.is_superuser and self.role != self.ROLE_ADMIN:
            self.role = self.ROLE_ADMIN

        if self.role == self.ROLE_TEACHER:
            if not self.school_class or not self.division:
                raise ValueError("Class teachers must be assigned a class and division.")
        else:
            self.school_class = ''
            self.division = ''

        if self.role != self.ROLE_SARVODAYA:
            self.section = ''

        super().save(*args, **kwargs)

    @property
    def class_key(self):
        if self.role != self.ROLE_TEACHER:
            return ''
        return f"{self.school_class}-{self.division}"

    @property
    def is_section_head(self):
        return self.role == self.ROLE_SARVODAYA and bool(self.section)

    @property
    def section_info(self):
        if not self.is_section_head:
            return None
        return get_section(self.section)

    def __str__(self):
        return f"{self.username} ({self.role})"


class AuditLog(models.Model):
    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True
    )

    action = models.CharField(max_length=100)
    target_model = models.CharField(max_length=100, blank=True)
    target_id = models.CharField(max_length=64, blank=True)
    details = models.TextField(blank=True)

    method = models.CharField(max_length=10, blank=True)
    path = models.CharField(max_length=255, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', '-created_at'], name='auditlog_user_created_idx'),
            models.Index(fields=['action'], name='auditlog_action_idx'),
        ]

    def __str__(self):
        return f"{self.action} by {self.user_id or 'system'}"
