from django.contrib import admin

from ticketing.models import Event, EventOrganizer, Payment, Purchase, SweepRun, TicketClass


class EventInline(admin.TabularInline):
    model = Event
    extra = 0
    fields = ["name", "event_date", "status"]
    readonly_fields = ["status"]


class TicketClassInline(admin.TabularInline):
    model = TicketClass
    extra = 1
    readonly_fields = ["remaining_quantity"]


@admin.register(EventOrganizer)
class EventOrganizerAdmin(admin.ModelAdmin):
    list_display = ["name", "email", "commission_rate", "created_at"]
    search_fields = ["name", "email"]
    inlines = [EventInline]


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ["name", "organizer", "venue", "event_date", "end_time", "status"]
    list_filter = ["status", "event_date"]
    search_fields = ["name", "venue"]
    readonly_fields = ["status"]
    inlines = [TicketClassInline]

    def save_formset(self, request, form, formset, change):
        instances = formset.save(commit=False)
        for obj in formset.deleted_objects:
            obj.delete()
        for instance in instances:
            if isinstance(instance, TicketClass) and instance._state.adding:
                instance.remaining_quantity = instance.total_quantity
            instance.save()
        formset.save_m2m()


@admin.register(TicketClass)
class TicketClassAdmin(admin.ModelAdmin):
    list_display = ["name", "event", "unit_price", "total_quantity", "remaining_quantity"]
    list_filter = ["event"]
    readonly_fields = ["remaining_quantity"]

    def save_model(self, request, obj, form, change):
        if not change:
            obj.remaining_quantity = obj.total_quantity
        super().save_model(request, obj, form, change)


@admin.register(Purchase)
class PurchaseAdmin(admin.ModelAdmin):
    list_display = ["buyer_email", "event", "ticket_class", "quantity", "gross_amount", "status", "created_at"]
    list_filter = ["status", "event"]
    search_fields = ["buyer_email", "buyer_name"]
    readonly_fields = ["event", "ticket_class", "quantity", "gross_amount", "status"]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ["purchase", "amount", "status", "platform_share", "organizer_share", "flagged_for_review"]
    list_filter = ["status", "flagged_for_review"]
    search_fields = ["external_reference"]
    readonly_fields = [
        "purchase",
        "amount",
        "status",
        "external_reference",
        "platform_share",
        "organizer_share",
        "completed_at",
    ]


@admin.register(SweepRun)
class SweepRunAdmin(admin.ModelAdmin):
    list_display = ["ran_at", "trigger", "completed_count", "error"]
    list_filter = ["trigger"]
    readonly_fields = ["trigger", "ran_at", "completed_count", "completed_events", "error"]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
