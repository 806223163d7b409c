import logging
from django.utils import timezone
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema

from core.permissions import (
    IsApproverUser, IsCampusUser, IsClassRepresentativeUser, IsStaffOrAboveUser, IsSubmitterUser,
)
from notifications.utils import notify_class_authorities, notify_student_of_decision
from .. import lifecycle
from ..serializers import (
    ApprovalSerializer, LookupSerializer, PermissionRequestSerializer, PermissionSubmissionSerializer,
)
from ..store import PermissionStore, StaleStateError
from ..verification import analyze_permission_letter

logger = logging.getLogger(__name__)

DEGRADED_HEADER = 'X-Store-Degraded'


class PermissionRequestViewSet(viewsets.GenericViewSet):
    """
    ViewSet for managing permission requests.
    Students submit letters, the class teacher or CR of the class approves or
    rejects them, and any staff member can look up approved permissions.
    """
    serializer_class = PermissionRequestSerializer
    lookup_value_regex = '[0-9a-fA-F-]{36}'
    store = PermissionStore()

    def get_permissions(self):
        """
        Assign permissions based on the action.
        """
        if self.action == 'create':
            return [IsSubmitterUser()]
        if self.action in ['pending', 'history', 'approve', 'reject']:
            return [IsApproverUser()]
        if self.action == 'today':
            return [IsClassRepresentativeUser()]
        if self.action == 'lookup':
            return [IsStaffOrAboveUser()]
        return [IsCampusUser()]

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['now'] = getattr(self, 'now', None)
        return context

    def initial(self, request, *args, **kwargs):
        # one clock reading per request so filters and labels agree
        self.now = timezone.now()
        super().initial(request, *args, **kwargs)

    @property
    def authority(self):
        return lifecycle.authority_for(self.request.user)

    def _unavailable(self, error):
        return Response(
            {'error': 'Permission store unavailable', 'detail': str(error)},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    def _listing(self, select, scope=None):
        """Serialize `select(records)` from a store read, flagging snapshot data."""
        result = self.store.list_permissions(scope=scope, now=self.now)
        if not result.ok:
            return self._unavailable(result.error)
        serializer = self.get_serializer(select(result.value), many=True)
        response = Response(serializer.data)
        if result.degraded:
            response[DEGRADED_HEADER] = '1'
        return response

    def _notify(self, notify, record):
        """Notices follow a stored change and never undo it."""
        try:
            notify(record)
        except Exception:
            logger.exception(f"Could not send notifications for permission request {record.id}")

    def _get_record(self, pk):
        result = self.store.get_permission(pk, now=self.now)
        if not result.ok:
            return None, self._unavailable(result.error)
        if result.value is None:
            raise NotFound({'error': 'Permission request not found.'})
        return result.value, None

    def list(self, request):
        """Everything the signed in user is allowed to see, newest first."""
        return self._listing(self.authority.list_visible)

    def retrieve(self, request, pk=None):
        record, error = self._get_record(pk)
        if error:
            return error
        if not self.authority.can_view(record):
            raise NotFound({'error': 'Permission request not found.'})
        return Response(self.get_serializer(record).data)

    @extend_schema(request=PermissionSubmissionSerializer, responses=PermissionRequestSerializer)
    def create(self, request):
        """
        Submit a permission letter. The letter is analysed before it is stored;
        the analysis is advisory and never stops the submission.
        """
        submission = PermissionSubmissionSerializer(data=request.data)
        submission.is_valid(raise_exception=True)
        record = submission.build(request.user, now=self.now)
        record.ai_verification = analyze_permission_letter(record.letter_image_base64)

        result = self.store.upsert_permission(record)
        if not result.ok:
            return self._unavailable(result.error)

        logger.info(f"Permission request {record.id} submitted by {request.user.email} for {record.scope}")
        self._notify(notify_class_authorities, record)
        return Response(self.get_serializer(record).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'], url_path='pending')
    def pending(self, request):
        """Requests waiting for this authority, oldest first."""
        authority = self.authority
        return self._listing(authority.pending, scope=authority.scope)

    @action(detail=False, methods=['get'], url_path='history')
    def history(self, request):
        """Decided requests of the authority's class, newest first."""
        authority = self.authority
        return self._listing(authority.history, scope=authority.scope)

    @action(detail=False, methods=['get'], url_path='mine')
    def mine(self, request):
        """The signed in user's own requests, from any class."""
        return self._listing(self.authority.own_history)

    @action(detail=False, methods=['get'], url_path='today')
    def today(self, request):
        """Approved permissions of the CR's class for today, by roll number."""
        authority = self.authority
        return self._listing(lambda records: authority.todays_board(records, self.now), scope=authority.scope)

    @extend_schema(parameters=[LookupSerializer])
    @action(detail=False, methods=['get'], url_path='lookup')
    def lookup(self, request):
        """Approved permissions of any class, by roll number."""
        query = LookupSerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        scope = lifecycle.Scope(**query.validated_data)
        return self._listing(lambda records: self.authority.lookup(records, scope), scope=scope)

    def _decide(self, pk, decide):
        record, error = self._get_record(pk)
        if error:
            return error
        authority = self.authority
        try:
            lifecycle.authorize_transition(authority, record)
        except lifecycle.AuthorizationError as e:
            raise PermissionDenied({'error': str(e)})

        try:
            decide(record, authority)
        except lifecycle.InvalidTransitionError as e:
            return Response(
                {'error': str(e), 'object': self.get_serializer(record).data},
                status=status.HTTP_409_CONFLICT,
            )

        try:
            result = self.store.transition(record, now=self.now)
        except StaleStateError as e:
            current = self.get_serializer(e.current).data if e.current is not None else None
            return Response({'error': str(e), 'object': current}, status=status.HTTP_409_CONFLICT)
        if not result.ok:
            return self._unavailable(result.error)

        self._notify(notify_student_of_decision, record)
        return Response({
            'message': f"Request {record.status.lower()} successfully",
            'object': self.get_serializer(record).data,
        })

    @extend_schema(request=ApprovalSerializer)
    @action(detail=True, methods=['post'], url_path='approve')
    def approve(self, request, pk=None):
        """
        Approve a permission request.
        The confirmed window defaults to the requested one.
        """
        def decide(record, authority):
            window = ApprovalSerializer(data=request.data, context={'record': record})
            window.is_valid(raise_exception=True)
            lifecycle.approve(
                record, authority,
                confirmed_date=window.validated_data.get('permissionDate'),
                confirmed_start=window.validated_data.get('startTime'),
                confirmed_end=window.validated_data.get('endTime'),
                now=self.now,
            )
        return self._decide(pk, decide)

    @action(detail=True, methods=['post'], url_path='reject')
    def reject(self, request, pk=None):
        """
        Reject a permission request.
        """
        return self._decide(pk, lambda record, authority: lifecycle.reject(record, authority, now=self.now))
