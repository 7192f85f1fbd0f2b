from django.core.validators import MinValueValidator
from django.db import models

from apps.core.utils.classes import CLASS_CHOICES, DIVISION_CHOICES, class_division_key, section_for_class


class Student(models.Model):
    admission_number = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=150)
    mobile = models.CharField(max_length=20)
    school_class = models.CharField(max_length=2, choices=CLASS_CHOICES)
    division = models.CharField(max_length=1, choices=DIVISION_CHOICES)

    bus_stop = models.CharField(max_length=100)
    bus_number = models.CharField(max_length=30, blank=True)
    trip_number = models.CharField(max_length=30, blank=True)
    bus_fee_discount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=0,
        validators=[MinValueValidator(0)],
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['school_class', 'division'], name='student_class_division_idx'),
            models.Index(fields=['bus_stop'], name='student_bus_stop_idx'),
        ]

    @property
    def class_key(self):
        return class_division_key(self.school_class, self.division)

    @property
    def section(self):
        return section_for_class(self.school_class)

    def __str__(self):
        return f"{self.name} ({self.admission_number})"
