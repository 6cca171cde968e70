"""
Session lifecycle and onboarding routing for the investor/startup portal.

This package provides the client side of authentication against the Account
Service API: acquiring, persisting and silently refreshing the access
credential, and deciding which screen a user may currently view while they
choose a role and pass through KYC verification.

Quick start
-----------

.. code-block:: python

   from flask import Flask
   from onboard_auth.auth import OnboardAuth

   app = Flask('portal')
   auth = OnboardAuth(app)

   result = auth.account.login('ada@example.com', 'hunter2')
   if result.ok:
       navigation = auth.navigator.navigate('/dashboard')
       print(navigation.rendered)

Outside of Flask, the same components can be wired by hand; see
:class:`onboard_auth.auth.OnboardAuth.build`.

"""
