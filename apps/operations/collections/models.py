from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from apps.core.utils.classes import SECTION_CHOICES


class CollectionEntry(models.Model):
    KIND_TEACHER_TO_SECTION = 'teacher_to_section'
    KIND_SECTION_TO_CLERK = 'section_to_clerk'
    KIND_SECTION_COLLECTED = 'section_collected'
    KIND_CHOICES = (
        (KIND_TEACHER_TO_SECTION, 'Class teacher to section head'),
        (KIND_SECTION_TO_CLERK, 'Section head to clerk'),
        (KIND_SECTION_COLLECTED, 'Section collected amount'),
    )

    CATEGORY_BUS_FEE = 'bus_fee'
    CATEGORY_DEVELOPMENT_FUND = 'development_fund'
    CATEGORY_OTHERS = 'others'
    CATEGORY_CHOICES = (
        (CATEGORY_BUS_FEE, 'Bus Fee'),
        (CATEGORY_DEVELOPMENT_FUND, 'Development Fund'),
        (CATEGORY_OTHERS, 'Others'),
    )

    kind = models.CharField(max_length=20, choices=KIND_CHOICES)
    # Class-teacher key ("5-A") or section code, depending on kind.
    source = models.CharField(max_length=20)
    # Section code, clerk name, or empty for section collected amounts.
    target = models.CharField(max_length=150, blank=True)
    section = models.CharField(max_length=3, choices=SECTION_CHOICES)

    fee_category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default=CATEGORY_OTHERS)
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    collection_date = models.DateField(default=timezone.localdate)
    remarks = models.CharField(max_length=255, blank=True)

    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='collection_entries',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-collection_date', '-id']
        verbose_name_plural = 'collection entries'
        indexes = [
            models.Index(fields=['kind', 'section'], name='collection_kind_section_idx'),
            models.Index(fields=['kind', 'source'], name='collection_kind_source_idx'),
        ]

    def __str__(self):
        return f"{self.get_kind_display()} {self.source} -> {self.target or self.section}: {self.amount}"
