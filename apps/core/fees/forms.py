from django import forms
from django.core.exceptions import ValidationError

from apps.core.students.models import Student
from apps.core.utils.classes import DIVISION_PRICED_CLASSES, DIVISIONS

from .models import FeeSetting, Payment


class PaymentForm(forms.Form):
    student = forms.ModelChoiceField(queryset=Student.objects.none())
    development_fee = forms.DecimalField(max_digits=10, decimal_places=2, min_value=0, initial=0)
    bus_fee = forms.DecimalField(max_digits=10, decimal_places=2, min_value=0, initial=0)
    special_fee = forms.DecimalField(max_digits=10, decimal_places=2, min_value=0, initial=0)
    special_fee_type = forms.CharField(max_length=120, required=False)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['student'].queryset = Student.objects.order_by('school_class', 'division', 'name')

    def clean(self):
        cleaned_data = super().clean()
        total = sum(
            (cleaned_data.get(field_name) or 0)
            for field_name in ('development_fee', 'bus_fee', 'special_fee')
        )
        if not self.errors and total <= 0:
            raise ValidationError('Enter at least one fee amount.')
        if (cleaned_data.get('special_fee') or 0) > 0 and not cleaned_data.get('special_fee_type'):
            self.add_error('special_fee_type', 'Describe the special fee being collected.')
        return cleaned_data


class PaymentEditForm(forms.ModelForm):
    class Meta:
        model = Payment
        fields = [
            'student_name',
            'admission_number',
            'school_class',
            'division',
            'development_fee',
            'bus_fee',
            'special_fee',
            'special_fee_type',
        ]


class FeeSettingForm(forms.Form):
    config_type = forms.ChoiceField(choices=FeeSetting.CONFIG_TYPE_CHOICES)
    config_key = forms.CharField(max_length=100, label='Class / bus stop')
    config_value = forms.DecimalField(max_digits=10, decimal_places=2, min_value=0, label='Amount')

    def clean(self):
        cleaned_data = super().clean()
        config_type = cleaned_data.get('config_type')
        config_key = (cleaned_data.get('config_key') or '').strip()

        if config_type == FeeSetting.TYPE_DEVELOPMENT_FEE and config_key:
            school_class, _, division = config_key.partition('-')
            if school_class in DIVISION_PRICED_CLASSES:
                if division not in DIVISIONS:
                    self.add_error(
                        'config_key',
                        f"Class {school_class} fees are set per division, e.g. {school_class}-A.",
                    )
            elif division or not school_class.isdigit() or not 1 <= int(school_class) <= 10:
                self.add_error('config_key', 'Use a class number between 1 and 10.')

        cleaned_data['config_key'] = config_key
        return cleaned_data
