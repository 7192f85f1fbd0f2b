from django import forms

from apps.core.utils.classes import CLASS_CHOICES, DIVISION_CHOICES

from .services import MATRIX_CATEGORIES

BLANK_CLASS_CHOICES = (('', 'All classes'),) + CLASS_CHOICES
BLANK_DIVISION_CHOICES = (('', 'All divisions'),) + DIVISION_CHOICES
DATE_INPUT = forms.DateInput(attrs={'type': 'date'})


class ClassFilterForm(forms.Form):
    school_class = forms.ChoiceField(choices=BLANK_CLASS_CHOICES, required=False, label='Class')
    division = forms.ChoiceField(choices=BLANK_DIVISION_CHOICES, required=False)


class ReceiptFilterForm(ClassFilterForm):
    on_date = forms.DateField(required=False, widget=DATE_INPUT, label='Date')
    date_from = forms.DateField(required=False, widget=DATE_INPUT)
    date_to = forms.DateField(required=False, widget=DATE_INPUT)

    def clean(self):
        cleaned_data = super().clean()
        date_from = cleaned_data.get('date_from')
        date_to = cleaned_data.get('date_to')
        if date_from and date_to and date_from > date_to:
            self.add_error('date_to', 'End date must be on or after the start date.')
        return cleaned_data


class ClassMonthlyForm(forms.Form):
    school_class = forms.ChoiceField(choices=CLASS_CHOICES, label='Class')
    division = forms.ChoiceField(choices=DIVISION_CHOICES)
    category = forms.ChoiceField(
        choices=[(key, key.replace('_', ' ').title()) for key in MATRIX_CATEGORIES],
        initial='total',
    )


class TeacherPeriodForm(forms.Form):
    PERIOD_ALL = 'all'
    PERIOD_MONTH = 'month'
    PERIOD_CUSTOM = 'custom'
    PERIOD_CHOICES = (
        (PERIOD_ALL, 'All time'),
        (PERIOD_MONTH, 'Month'),
        (PERIOD_CUSTOM, 'Custom range'),
    )

    period = forms.ChoiceField(choices=PERIOD_CHOICES, required=False, initial=PERIOD_ALL)
    month = forms.RegexField(regex=r'^\d{4}-\d{2}$', required=False, help_text='YYYY-MM')
    date_from = forms.DateField(required=False, widget=DATE_INPUT)
    date_to = forms.DateField(required=False, widget=DATE_INPUT)

    def clean(self):
        cleaned_data = super().clean()
        period = cleaned_data.get('period') or self.PERIOD_ALL
        if period == self.PERIOD_MONTH and not cleaned_data.get('month'):
            self.add_error('month', 'Choose a month.')
        if period == self.PERIOD_CUSTOM and not (cleaned_data.get('date_from') and cleaned_data.get('date_to')):
            self.add_error('date_to', 'Choose both dates.')
        cleaned_data['period'] = period
        return cleaned_data

    def payment_filters(self):
        if not self.is_valid():
            return {}
        cleaned = self.cleaned_data
        if cleaned['period'] == self.PERIOD_MONTH:
            return {'month': cleaned['month']}
        if cleaned['period'] == self.PERIOD_CUSTOM:
            return {'date_from': cleaned['date_from'], 'date_to': cleaned['date_to']}
        return {}
