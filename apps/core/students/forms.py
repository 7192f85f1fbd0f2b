from django import forms

from apps.core.fees.services import load_fee_configuration

from .models import Student


class StudentForm(forms.ModelForm):
    bus_stop = forms.ChoiceField(choices=())

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)

        stops = sorted(load_fee_configuration().bus_stops)
        current_stop = self.instance.bus_stop if self.instance and self.instance.pk else ''
        if current_stop and current_stop not in stops:
            stops.append(current_stop)
        self.fields['bus_stop'].choices = [('', '---------')] + [(stop, stop) for stop in stops]

    class Meta:
        model = Student
        fields = [
            'admission_number',
            'name',
            'mobile',
            'school_class',
            'division',
            'bus_stop',
            'bus_number',
            'trip_number',
            'bus_fee_discount',
        ]

    def clean_admission_number(self):
        return (self.cleaned_data.get('admission_number') or '').strip()

    def validate_unique(self):
        # Duplicate admission numbers are rejected by the student services.
        pass


class StudentImportForm(forms.Form):
    file = forms.FileField(help_text='CSV with Admission No, Name, Mobile, Class, Division, Bus Stop, Bus Number, Trip Number.')

    def clean_file(self):
        upload = self.cleaned_data['file']
        if not upload.name.lower().endswith('.csv'):
            raise forms.ValidationError('Upload a .csv file.')
        try:
            return upload.read().decode('utf-8-sig')
        except UnicodeDecodeError:
            raise forms.ValidationError('The file must be UTF-8 encoded.')
