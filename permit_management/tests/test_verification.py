import json
from unittest import mock

import requests
from django.test import SimpleTestCase, override_settings

from .. import verification


def gemini_response(verdict):
    response = mock.Mock()
    response.raise_for_status.return_value = None
    response.json.return_value = {
        "candidates": [{"content": {"parts": [{"text": json.dumps(verdict)}]}}],
    }
    return response


VERDICT = {
    "extractedName": "Asha Rao",
    "extractedReason": "Hospital visit",
    "hasSignature": True,
    "riskScore": 12,
    "summary": "Signed letter from parent.",
    "isLegitimate": True,
}


@override_settings(GEMINI_API_KEY='test-key', GEMINI_MODEL='gemini-2.5-flash', VERIFICATION_TIMEOUT=15)
class AnalyzePermissionLetterTests(SimpleTestCase):

    @mock.patch('permit_management.verification.requests.post')
    def test_verdict_is_returned(self, mock_post):
        mock_post.return_value = gemini_response(VERDICT)
        result = verification.analyze_permission_letter('data:image/png;base64,AAAA')
        self.assertEqual(result, VERDICT)

        args, kwargs = mock_post.call_args
        self.assertIn('gemini-2.5-flash:generateContent', args[0])
        self.assertEqual(kwargs['headers']['x-goog-api-key'], 'test-key')
        self.assertEqual(kwargs['timeout'], 15)
        inline = kwargs['json']['contents'][0]['parts'][0]['inlineData']
        self.assertEqual(inline, {'mimeType': 'image/png', 'data': 'AAAA'})

    @mock.patch('permit_management.verification.requests.post')
    def test_risk_score_is_clamped(self, mock_post):
        mock_post.return_value = gemini_response({**VERDICT, "riskScore": 140})
        self.assertEqual(verification.analyze_permission_letter('AAAA')['riskScore'], 100)
        mock_post.return_value = gemini_response({**VERDICT, "riskScore": -3})
        self.assertEqual(verification.analyze_permission_letter('AAAA')['riskScore'], 0)

    @mock.patch('permit_management.verification.requests.post', side_effect=requests.exceptions.Timeout)
    def test_timeout_falls_back(self, mock_post):
        self.assertEqual(verification.analyze_permission_letter('AAAA'), verification.fallback_result())

    @mock.patch('permit_management.verification.requests.post')
    def test_http_error_falls_back(self, mock_post):
        response = mock.Mock()
        response.raise_for_status.side_effect = requests.exceptions.HTTPError('500 Server Error')
        mock_post.return_value = response
        self.assertEqual(verification.analyze_permission_letter('AAAA'), verification.fallback_result())

    @mock.patch('permit_management.verification.requests.post')
    def test_malformed_verdict_falls_back(self, mock_post):
        mock_post.return_value = gemini_response({**VERDICT, "hasSignature": "yes"})
        self.assertEqual(verification.analyze_permission_letter('AAAA'), verification.fallback_result())

        response = mock.Mock()
        response.raise_for_status.return_value = None
        response.json.return_value = {"candidates": []}
        mock_post.return_value = response
        self.assertEqual(verification.analyze_permission_letter('AAAA'), verification.fallback_result())

    @override_settings(GEMINI_API_KEY='')
    @mock.patch('permit_management.verification.requests.post')
    def test_missing_key_skips_call(self, mock_post):
        result = verification.analyze_permission_letter('AAAA')
        self.assertEqual(result['summary'], 'AI analysis failed. Please verify manually.')
        mock_post.assert_not_called()


class ParseVerificationTests(SimpleTestCase):
    def test_boolean_risk_score_is_rejected(self):
        with self.assertRaises(verification.VerificationError):
            verification.parse_verification({
                "candidates": [{"content": {"parts": [{"text": json.dumps({**VERDICT, "riskScore": True})}]}}],
            })

    def test_plain_base64_defaults_to_jpeg(self):
        self.assertEqual(verification.split_data_url('AAAA'), ('image/jpeg', 'AAAA'))
