def _iso(value):
    return value.isoformat() if value else None


def user_public(u):
    if u is None:
        return None
    return {
        "id": u.id,
        "name": u.name,
        "email": u.email,
        "role": u.role,
        "department": u.department,
    }


def slot_json(s, extra=None):
    out = {
        "id": s.id,
        "facultyId": s.faculty_id,
        "startTime": _iso(s.start_time),
        "endTime": _iso(s.end_time),
        "location": s.location,
        "notes": s.notes,
        "capacity": s.capacity,
        "isCancelled": s.is_cancelled,
        "createdAt": _iso(s.created_at),
    }
    if extra:
        out.update(extra)
    return out


def booking_json(b):
    return {
        "id": b.id,
        "slotId": b.slot_id,
        "facultyId": b.faculty_id,
        "studentId": b.student_id,
        "status": b.status,
        "cancellationReason": b.cancellation_reason,
        "bookedAt": _iso(b.booked_at),
        "approvedAt": _iso(b.approved_at),
        "rejectedAt": _iso(b.rejected_at),
        "cancelledAt": _iso(b.cancelled_at),
        "originalBookingId": b.original_booking_id,
        "rescheduledTo": b.rescheduled_to,
        "recurringAppointmentId": b.recurring_appointment_id,
    }


def waitlist_json(w):
    return {
        "id": w.id,
        "slotId": w.slot_id,
        "facultyId": w.faculty_id,
        "studentId": w.student_id,
        "position": w.position,
        "status": w.status,
        "notificationSentAt": _iso(w.notification_sent_at),
        "responseDeadline": _iso(w.response_deadline),
        "preferredTiming": w.preferred_timing,
        "notes": w.notes,
        "createdAt": _iso(w.created_at),
    }


def series_json(r):
    return {
        "id": r.id,
        "bookingId": r.booking_id,
        "slotId": r.slot_id,
        "studentId": r.student_id,
        "facultyId": r.faculty_id,
        "recurrenceType": r.recurrence_type,
        "endDate": _iso(r.end_date),
        "generatedBookings": list(r.generated_bookings or []),
        "isActive": r.is_active,
        "cancelledAt": _iso(r.cancelled_at),
        "cancelReason": r.cancel_reason,
    }


def notification_json(n):
    return {
        "id": n.id,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "relatedBookingId": n.related_booking_id,
        "relatedSlotId": n.related_slot_id,
        "isRead": n.is_read,
        "emailSent": n.email_sent,
        "createdAt": _iso(n.created_at),
    }
