from django import forms

from apps.core.utils.classes import SECTION_CHOICES, class_teacher_keys

from .models import CollectionEntry


class CollectionEntryForm(forms.Form):
    source = forms.ChoiceField(choices=())
    target = forms.CharField(max_length=150, required=False, label='Handed to')
    fee_category = forms.ChoiceField(choices=CollectionEntry.CATEGORY_CHOICES, initial=CollectionEntry.CATEGORY_OTHERS)
    amount = forms.DecimalField(max_digits=12, decimal_places=2, min_value=0.01)
    collection_date = forms.DateField(required=False, widget=forms.DateInput(attrs={'type': 'date'}))
    remarks = forms.CharField(max_length=255, required=False)

    def __init__(self, *args, kind, section='', **kwargs):
        super().__init__(*args, **kwargs)
        self.kind = kind

        if kind == CollectionEntry.KIND_TEACHER_TO_SECTION:
            self.fields['source'].label = 'Class teacher'
            self.fields['source'].choices = [(key, key) for key in class_teacher_keys(section)]
            del self.fields['target']
        elif kind == CollectionEntry.KIND_SECTION_TO_CLERK:
            self.fields['source'].label = 'Section'
            self.fields['source'].choices = SECTION_CHOICES
        else:
            self.fields['source'].label = 'Section'
            self.fields['source'].choices = [
                (code, name) for code, name in SECTION_CHOICES if not section or code == section
            ]
            del self.fields['target']


class CollectionFilterForm(forms.Form):
    date_from = forms.DateField(required=False, widget=forms.DateInput(attrs={'type': 'date'}))
    date_to = forms.DateField(required=False, widget=forms.DateInput(attrs={'type': 'date'}))
    source = forms.CharField(max_length=20, required=False)
