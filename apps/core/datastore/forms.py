from django import forms


class BackupRestoreForm(forms.Form):
    backup_file = forms.FileField(help_text='A JSON backup downloaded from this page.')
    confirm = forms.BooleanField(label='Replace all students, payments, fee settings and collection entries')

    def clean_backup_file(self):
        backup_file = self.cleaned_data['backup_file']
        if not backup_file.name.lower().endswith('.json'):
            raise forms.ValidationError('Upload a .json backup file.')
        return backup_file


class ClearDataForm(forms.Form):
    SCOPE_STUDENTS = 'students'
    SCOPE_PAYMENTS = 'payments'
    SCOPE_ALL = 'all'
    SCOPE_CHOICES = (
        (SCOPE_STUDENTS, 'All students'),
        (SCOPE_PAYMENTS, 'All payments'),
        (SCOPE_ALL, 'Everything'),
    )

    scope = forms.ChoiceField(choices=SCOPE_CHOICES)
    confirm_text = forms.CharField(label='Type DELETE to confirm')

    def clean_confirm_text(self):
        value = self.cleaned_data['confirm_text'].strip()
        if value != 'DELETE':
            raise forms.ValidationError('Type DELETE to confirm.')
        return value


class ReportEmailForm(forms.Form):
    recipients = forms.CharField(
        required=False,
        help_text='Comma separated. Leave empty to use the configured recipients.',
    )
    since = forms.DateField(required=False, widget=forms.DateInput(attrs={'type': 'date'}))

    def clean_recipients(self):
        addresses = [
            address.strip()
            for address in self.cleaned_data['recipients'].split(',')
            if address.strip()
        ]
        validator = forms.EmailField()
        return [validator.clean(address) for address in addresses]
