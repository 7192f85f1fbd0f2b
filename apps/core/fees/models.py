from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from apps.core.students.models import Student
from apps.core.utils.classes import CLASS_CHOICES, DIVISION_CHOICES, class_division_key


class FeeSetting(models.Model):
    TYPE_DEVELOPMENT_FEE = 'development_fee'
    TYPE_BUS_STOP = 'bus_stop'
    CONFIG_TYPE_CHOICES = (
        (TYPE_DEVELOPMENT_FEE, 'Development Fee'),
        (TYPE_BUS_STOP, 'Bus Stop'),
    )

    config_type = models.CharField(max_length=20, choices=CONFIG_TYPE_CHOICES)
    config_key = models.CharField(max_length=100)
    config_value = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(0)],
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['config_type', 'config_key']
        constraints = [
            models.UniqueConstraint(
                fields=['config_type', 'config_key'],
                name='unique_fee_setting_per_key',
            ),
        ]

    def __str__(self):
        return f"{self.get_config_type_display()} {self.config_key}: {self.config_value}"


class Payment(models.Model):
    student = models.ForeignKey(
        Student,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='payments',
    )

    # Snapshot of the student at payment time.
    student_name = models.CharField(max_length=150)
    admission_number = models.CharField(max_length=50, db_index=True)
    school_class = models.CharField(max_length=2, choices=CLASS_CHOICES)
    division = models.CharField(max_length=1, choices=DIVISION_CHOICES)

    development_fee = models.DecimalField(
        max_digits=10, decimal_places=2, default=0, validators=[MinValueValidator(0)]
    )
    bus_fee = models.DecimalField(
        max_digits=10, decimal_places=2, default=0, validators=[MinValueValidator(0)]
    )
    special_fee = models.DecimalField(
        max_digits=10, decimal_places=2, default=0, validators=[MinValueValidator(0)]
    )
    special_fee_type = models.CharField(max_length=120, blank=True)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0, editable=False)

    payment_date = models.DateTimeField(default=timezone.now, editable=False, db_index=True)
    added_by = models.CharField(max_length=150)

    class Meta:
        ordering = ['-payment_date', '-id']
        indexes = [
            models.Index(fields=['school_class', 'division'], name='payment_class_division_idx'),
        ]

    @property
    def class_key(self):
        return class_division_key(self.school_class, self.division)

    @property
    def receipt_number(self):
        if not self.pk:
            return ''
        return f"RCP-{self.payment_date:%Y%m%d}-{self.pk:06d}"

    def save(self, *args, **kwargs):
        self.total_amount = (
            Decimal(str(self.development_fee or 0))
            + Decimal(str(self.bus_fee or 0))
            + Decimal(str(self.special_fee or 0))
        )
        update_fields = kwargs.get('update_fields')
        if update_fields is not None and 'total_amount' not in update_fields:
            kwargs['update_fields'] = list(update_fields) + ['total_amount']
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.student_name} - {self.total_amount} ({self.receipt_number or 'unsaved'})"
