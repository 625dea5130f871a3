from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import Fine
from .notifications import notify_reader


@receiver(post_save, sender=Fine)
def send_fine_notification(sender, instance, created, **kwargs):
    if not created or kwargs.get('raw'):
        return
    record = instance.borrow_record
    reader = record.reader
    subject = f'Fine Notice: {record.physical_copy.book.title}'
    message = (
        f"Dear {reader.full_name},\n\n"
        f"A fine of {instance.fine_amount:,.0f} has been issued for '{record.physical_copy.book.title}'.\n"
        f"Reason: {instance.get_reason_display()}\n"
    )
    if instance.description:
        message += f"{instance.description}\n"
    notify_reader(reader, subject, message)
