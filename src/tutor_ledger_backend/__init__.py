'''
Tutor Ledger Backend: hour balances and debt reconciliation for tutoring sessions.
'''
